"""Combinators: derived Variables built from other Variables.

Each combinator owns a private Variable, subscribes to its sources from
the executor, and re-emits derived values. Sources may be plain values,
futures, or listenables (see varfx.normalize). Closing the derived
Variable releases every upstream subscription.

None of this uses Variable internals; only listen(), emit() and on_close().
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping, Sequence
from typing import Callable, Iterable, TypeVar

from varfx.normalize import feed, is_listenable, option
from varfx.scheduling import get_queue
from varfx.sentinel import UNDEFINED, is_scalar, same_value
from varfx.variable import Unlisten, Variable

R = TypeVar("R")

logger = logging.getLogger("varfx.combinators")


def _release(unlistens: Iterable[Unlisten], owner: str) -> None:
    """Call every unlisten. A failing one must not stop the others."""
    for unlisten in unlistens:
        try:
            unlisten()
        except Exception:
            logger.exception("Unlisten from %s raised", owner)


def all_(sources: Iterable) -> Variable[list]:
    """Emit a list of every source's latest value once all are available.

    While any source is UNDEFINED the result is UNDEFINED, never a list
    with a hole in it. An empty source list emits [] right away.

    Usage:
        pair = all_([1, fetch_user()])
        # UNDEFINED until fetch_user() settles, then [1, <user>]
    """
    sources = list(sources)
    values = [UNDEFINED] * len(sources)
    unresolved = len(sources)
    unlistens: list[Unlisten] = []

    def executor(emit) -> None:
        def resolve_part(index: int, value) -> None:
            nonlocal unresolved
            previous = values[index]
            if previous is UNDEFINED and value is not UNDEFINED:
                unresolved -= 1
            elif previous is not UNDEFINED and value is UNDEFINED:
                unresolved += 1
                # Only the first part to drop out re-emits UNDEFINED.
                if unresolved == 1:
                    emit(UNDEFINED)
            values[index] = value
            if unresolved == 0:
                emit(list(values))

        for index, source in enumerate(sources):
            unlisten = feed(source, functools.partial(resolve_part, index))
            if unlisten is not None:
                unlistens.append(unlisten)

        if not sources:
            emit([])

    result: Variable[list] = Variable(executor)

    def _close() -> None:
        _release(unlistens, "all_")
        unlistens.clear()

    result.on_close(_close)
    return result


def first(*sources) -> Variable:
    """Emit the value of the lowest-indexed source that is not UNDEFINED.

    Every update re-scans all sources, so when an earlier source drops to
    UNDEFINED a later source's known value shows through immediately.
    """
    values = [UNDEFINED] * len(sources)
    unlistens: list[Unlisten] = []

    def executor(emit) -> None:
        def resolve_part(index: int, value) -> None:
            values[index] = value
            for candidate in values:
                if candidate is not UNDEFINED:
                    emit(candidate)
                    return
            emit(UNDEFINED)

        for index, source in enumerate(sources):
            unlisten = feed(source, functools.partial(resolve_part, index))
            if unlisten is not None:
                unlistens.append(unlisten)

    result = Variable(executor)

    def _close() -> None:
        _release(unlistens, "first")
        unlistens.clear()

    result.on_close(_close)
    return result


def lift(fn: Callable[..., R]) -> Callable[..., Variable[R]]:
    """Turn a synchronous function into one over options.

    The lifted function takes values, futures or listenables and returns a
    Variable of fn's result. fn is not called while any argument is
    UNDEFINED; the result is UNDEFINED instead. If fn raises, the exception
    is emitted as the error alongside UNDEFINED.

    Usage:
        add = lift(lambda a, b: a + b)
        total = add(price, tax)  # re-computed whenever price or tax changes
    """

    @functools.wraps(fn)
    def lifted(*args) -> Variable[R]:
        args = list(args)
        unlisten: Unlisten | None = None

        def executor(emit) -> None:
            nonlocal unlisten

            def _on_values(values, error) -> None:
                if values is UNDEFINED:
                    emit(UNDEFINED)
                    return
                try:
                    value = fn(*values)
                except Exception as e:
                    logger.exception("Exception in lifted function %s", getattr(fn, "__name__", fn))
                    emit(UNDEFINED, e)
                    return
                emit(value)

            unlisten = all_(args).listen(_on_values)

        result: Variable[R] = Variable(executor)

        def _close() -> None:
            nonlocal unlisten
            if unlisten is not None:
                unlisten()
                unlisten = None

        result.on_close(_close)
        return result

    return lifted


def collect(sources: Mapping, results: dict | None = None) -> Variable[dict]:
    """Turn a mapping of options into a Variable of one dict of values.

    results (a fresh dict by default) is seeded with UNDEFINED for every
    key, then patched in place and re-emitted as each key's value changes.
    Passing your own dict lets you read the latest values synchronously.
    Object-typed values always count as changed.

    Usage:
        latest = {}
        profile = collect({"name": name_var, "avatar": fetch_avatar()}, latest)
    """
    if results is None:
        results = {}
    keys = list(sources)
    unlistens: dict[object, Unlisten] = {}

    for key in keys:
        results[key] = UNDEFINED

    def executor(emit) -> None:
        for key in keys:

            def _on_value(value, error, key=key) -> None:
                if not same_value(results[key], value):
                    results[key] = value
                    emit(results)

            unlistens[key] = option(sources[key]).listen(_on_value)
        emit(results)

    result: Variable[dict] = Variable(executor)

    def _close() -> None:
        _release(list(unlistens.values()), "collect")
        unlistens.clear()

    result.on_close(_close)
    return result


def flatten(stream) -> Variable:
    """Follow whichever inner Variable the outer stream emitted last.

    Switching to a new inner releases the previous one first, so values
    from an abandoned inner never reach the result.
    """
    unlisten_outer: Unlisten | None = None
    unlisten_inner: Unlisten | None = None

    def executor(emit) -> None:
        nonlocal unlisten_outer

        def _on_inner(inner, error) -> None:
            nonlocal unlisten_inner
            if unlisten_inner is not None:
                unlisten_inner()
                unlisten_inner = None
            if inner is UNDEFINED:
                emit(UNDEFINED)
                return
            if not is_listenable(inner):
                inner = option(inner)
            unlisten_inner = inner.listen(lambda value, err: emit(value, err))

        unlisten_outer = stream.listen(_on_inner)

    result = Variable(executor)

    def _close() -> None:
        nonlocal unlisten_outer, unlisten_inner
        pending = [fn for fn in (unlisten_inner, unlisten_outer) if fn is not None]
        unlisten_inner = unlisten_outer = None
        _release(pending, "flatten")

    result.on_close(_close)
    return result


def from_array(items: Iterable) -> Variable:
    """Emit items one per queue tick, starting when the first listener attaches.

    Adjacent equal scalars collapse, as with any emit().
    """
    items = list(items)
    position = 0
    result = Variable(lambda emit: None)

    def _start(emit) -> None:
        def _step() -> None:
            nonlocal position
            if result.is_closed or position >= len(items):
                return
            value = items[position]
            position += 1
            emit(value)
            get_queue().schedule(_step)

        _step()

    result.on_open(_start)
    return result


@lift
def get_prop(obj, prop):
    """Look up prop on obj: mapping key, sequence index, else attribute.

    UNDEFINED when prop is None or missing; None when obj is None.
    """
    if prop is None:
        return UNDEFINED
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(prop, UNDEFINED)
    if is_scalar(obj):
        raise TypeError(f"Trying to get prop {prop!r} of non-object {obj!r}")
    if isinstance(obj, Sequence):
        try:
            return obj[prop]
        except (IndexError, TypeError):
            return UNDEFINED
    return getattr(obj, str(prop), UNDEFINED)


@lift
def concat(first_part, second_part):
    if first_part is None or second_part is None:
        return UNDEFINED
    return f"{first_part}{second_part}"


def log_values(source, label: str) -> Unlisten:
    """Log every value source delivers. Returns the unlisten."""

    def _log(value, error) -> None:
        if error is not None:
            logger.info("%s %r (error: %r)", label, value, error)
        else:
            logger.info("%s %r", label, value)

    return source.listen(_log)
