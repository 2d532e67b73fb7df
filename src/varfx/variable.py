"""Variable: an asynchronous, listenable, memoizing value.

A Variable is created from an executor, which is called synchronously with
the Variable's emit function. Anything it emits then becomes the initial
value. Listeners are always called later, from the task queue, never from
inside emit() or listen().

Every new listener first receives the current value (UNDEFINED if nothing
was emitted yet). Emitted values are shared between listeners, not copied;
listeners must not mutate them.

Lifecycle: the first listen() calls the on_open hook, the last unlisten
calls the on_close hook and fires .closed. After that the Variable is
closed for good: emit() and listen() raise ClosedError.

Thread safety: call set_thread_scheduler() once from the loop thread. After
that, emit() from any other thread is marshaled through the scheduler.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Protocol, TypeVar

from varfx.errors import ClosedError, ConfigurationError, InvalidArgumentError
from varfx.oneshot import OneShot
from varfx.scheduling import get_queue
from varfx.sentinel import UNDEFINED, same_value

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

Listener = Callable[[T, "BaseException | None"], None]
Unlisten = Callable[[], None]
Emit = Callable[..., None]
Executor = Callable[[Emit], None]

logger = logging.getLogger("varfx.variable")


class Listenable(Protocol[T_co]):
    """Anything with a listen(listener) -> unlisten method."""

    def listen(self, listener: Callable[[T_co, BaseException | None], None]) -> Unlisten: ...


# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_thread_scheduler(scheduler) -> None:
    """Set the scheduler used for emit() calls from other threads.

    Call once from the thread running the event loop:
        varfx.set_thread_scheduler(loop.call_soon_threadsafe)

    After this, emit() from a background thread is handed to scheduler as a
    zero-argument callable. Emits on the calling thread stay direct.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread()


class _Slot:
    __slots__ = ("listener", "unlisten")

    def __init__(self, listener: Listener) -> None:
        self.listener = listener
        self.unlisten: Unlisten | None = None


class Variable(Generic[T]):
    """A single changing value with an explicit open/close lifecycle."""

    __slots__ = (
        "_value",
        "_has_emitted",
        "_slots",
        "_listener_count",
        "_on_open",
        "_on_close",
        "_closed",
        "__weakref__",
    )

    def __init__(self, executor: Executor) -> None:
        if not callable(executor):
            raise InvalidArgumentError("Missing executor function in Variable constructor.")
        self._value = UNDEFINED
        self._has_emitted = False
        # Tombstoned as None on unlisten; dropped entirely on close.
        self._slots: list[_Slot | None] | None = []
        self._listener_count = 0
        self._on_open: Callable[[Emit], None] | None = None
        self._on_close: Callable[[], None] | None = None
        self._closed = OneShot()
        executor(self.emit)

    @property
    def value(self) -> T:
        return self._value

    @property
    def has_emitted(self) -> bool:
        return self._has_emitted

    @property
    def listener_count(self) -> int:
        return self._listener_count

    @property
    def is_closed(self) -> bool:
        return self._slots is None

    @property
    def closed(self) -> OneShot:
        """Fires once, when the last listener goes away."""
        return self._closed

    def emit(self, value=UNDEFINED, error: BaseException | None = None) -> None:
        """Store value and deliver it (with error, if any) to every listener."""
        if _scheduler is not None and threading.current_thread() is not _scheduler_thread:
            _scheduler(lambda: self._emit_direct(value, error))
        else:
            self._emit_direct(value, error)

    def _emit_direct(self, value, error: BaseException | None) -> None:
        self._check_closed("emit")
        if self._has_emitted and error is None and same_value(self._value, value):
            return
        self._has_emitted = True
        self._value = value
        for index in range(len(self._slots)):
            self._deliver(index, value, error)

    def listen(self, listener: Listener) -> Unlisten:
        """Register listener(value, error). Returns an idempotent unlisten."""
        if not callable(listener):
            raise InvalidArgumentError("Missing listener function.")
        self._check_closed("listen")

        if self._listener_count == 0 and self._on_open is not None:
            self._on_open(self.emit)
        self._listener_count += 1

        index = len(self._slots)
        slot = _Slot(listener)
        self._slots.append(slot)

        def unlisten() -> None:
            slots = self._slots
            if slots is None or slots[index] is not slot:
                return
            self._listener_count -= 1
            slots[index] = None
            self._check_zero_listeners()

        slot.unlisten = unlisten
        self._deliver(index, self._value, None)
        return unlisten

    def on_open(self, fn: Callable[[Emit], None]) -> None:
        """Call fn(emit) when the first listener attaches."""
        if not callable(fn):
            raise InvalidArgumentError("on_open() requires a callable.")
        if self._on_open is not None:
            raise ConfigurationError("Variable supports at most one on_open() call.")
        self._on_open = fn

    def on_close(self, fn: Callable[[], None]) -> None:
        """Call fn() synchronously as soon as the last listener goes away."""
        if not callable(fn):
            raise InvalidArgumentError("on_close() requires a callable.")
        if self._on_close is not None:
            raise ConfigurationError("Variable supports at most one on_close() call.")
        self._on_close = fn

    def _deliver(self, index: int, value, error: BaseException | None) -> None:
        if self._slots is None or self._slots[index] is None:
            return
        get_queue().schedule(self._dispatch, index, value, error)

    def _dispatch(self, index: int, value, error: BaseException | None) -> None:
        """Runs on the queue. The slot may have been unlistened meanwhile."""
        slots = self._slots
        if slots is None:
            return
        slot = slots[index]
        if slot is None:
            return
        try:
            slot.listener(value, error)
        except Exception:
            logger.exception("Listener exception in %r", self)

    def _check_zero_listeners(self) -> None:
        if self._listener_count > 0:
            return
        self._slots = None
        try:
            if self._on_close is not None:
                self._on_close()
        finally:
            self._closed.fire()

    def _check_closed(self, action: str) -> None:
        if self._slots is None:
            raise ClosedError(f"Attempting to {action} on a closed Variable.")

    def __repr__(self) -> str:
        state = "closed" if self._slots is None else f"listeners={self._listener_count}"
        return f"Variable({self._value!r}, {state})"
