"""The UNDEFINED marker and scalar comparison rules.

UNDEFINED means "no value available yet". It is distinct from None, which
is an ordinary value a producer may emit to mean "empty".
"""

from __future__ import annotations

_SCALAR_TYPES = (bool, int, float, complex, str, bytes)


class _Undefined:
    """Singleton type of UNDEFINED."""

    __slots__ = ()
    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()


def is_scalar(value: object) -> bool:
    """True for values compared by equality; everything else is object-typed."""
    return value is None or value is UNDEFINED or isinstance(value, _SCALAR_TYPES)


def same_value(old: object, new: object) -> bool:
    """Would emitting `new` after `old` be a repeat?

    Only scalars can repeat. Object-typed values always count as new, even
    when `new is old`, since listeners may have been handed a mutated object.
    """
    return is_scalar(new) and type(old) is type(new) and old == new
