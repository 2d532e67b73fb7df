"""Cooperative scheduling: the queue every delivery runs on.

All listener calls and combinator updates are deferred onto a single
TaskQueue instead of running inside emit() or listen(). The queue is
processed in ticks: a tick runs the callbacks that were queued when it
started, so anything scheduled during a tick waits for the next one.

Inside a running asyncio loop the queue wakes itself with loop.call_soon.
Without a running loop nothing happens until someone calls drain() or
run_once(). That is how the synchronous tests drive it. Work queued before
the loop started is picked up by the first wake(), schedule() or settle()
made inside the loop.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from typing import Callable, ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger("varfx.scheduling")


class TaskQueue:
    """Single-threaded FIFO of deferred callbacks."""

    def __init__(self) -> None:
        self._tasks: deque[tuple[Callable[..., object], tuple]] = deque()
        # Last loop seen running; lets other threads hand work back to it.
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup_loop: asyncio.AbstractEventLoop | None = None

    def schedule(self, fn: Callable[..., object], *args: object) -> None:
        """Queue fn(*args) for a later tick."""
        self._tasks.append((fn, args))
        self.wake()

    def wake(self) -> None:
        """Make sure pending callbacks get a tick on the event loop.

        schedule() calls this itself. Call it (or await settle()) once the
        loop is running to flush work queued before the loop started.
        Called off the loop thread, it hands the tick to the last loop that
        ran the queue.
        """
        if not self._tasks:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = self._loop
            if loop is None or loop.is_closed() or not loop.is_running():
                return
            if self._wakeup_loop is not loop:
                self._wakeup_loop = loop
                loop.call_soon_threadsafe(self._on_wakeup)
            return
        self._loop = loop
        # A wakeup left behind on a loop that has since stopped doesn't count.
        if self._wakeup_loop is loop:
            return
        self._wakeup_loop = loop
        loop.call_soon(self._on_wakeup)

    def _on_wakeup(self) -> None:
        self._wakeup_loop = None
        self.run_once()
        self.wake()

    def run_once(self) -> int:
        """Run one tick. Returns the number of callbacks run."""
        count = len(self._tasks)
        for _ in range(count):
            fn, args = self._tasks.popleft()
            try:
                fn(*args)
            except Exception:
                logger.exception("Scheduled task %r raised", fn)
        return count

    def drain(self) -> int:
        """Run ticks until the queue is empty. Returns the callbacks run."""
        total = 0
        while self._tasks:
            total += self.run_once()
        return total

    def pending_count(self) -> int:
        """Number of callbacks waiting. Useful for testing."""
        return len(self._tasks)

    def __repr__(self) -> str:
        return f"TaskQueue(pending={len(self._tasks)})"


_queue = TaskQueue()


def get_queue() -> TaskQueue:
    return _queue


def set_queue(queue: TaskQueue) -> TaskQueue:
    """Install the process-wide queue. Returns the previous one."""
    global _queue
    previous, _queue = _queue, queue
    return previous


async def settle(queue: TaskQueue | None = None) -> None:
    """Yield to the event loop until the queue has stayed empty for a while.

    Kicks the queue on every pass, so work queued before the loop started
    runs too. Future callbacks can refill the queue a loop iteration later,
    so one empty check is not enough.
    """
    queue = queue if queue is not None else get_queue()
    quiet = 0
    while quiet < 3:
        queue.wake()
        await asyncio.sleep(0)
        quiet = 0 if queue.pending_count() else quiet + 1


def async_(fn: Callable[P, R]) -> Callable[P, asyncio.Future[R]]:
    """Asynchronous version of a synchronous function.

    The wrapper returns a future at once; fn runs on the next queue tick.
    Must be called with a running event loop.

    Usage:
        deferred_sum = async_(lambda a, b: a + b)
        assert await deferred_sum(1, 2) == 3
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> asyncio.Future[R]:
        future = asyncio.get_running_loop().create_future()

        def _run() -> None:
            if future.cancelled():
                return
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)

        get_queue().schedule(_run)
        return future

    return wrapper


def delay(ms: float, fn: Callable[[], R]) -> asyncio.Future[R]:
    """Call fn() after ms milliseconds; return a future for its result."""
    loop = asyncio.get_running_loop()
    get_queue().wake()
    future = loop.create_future()

    def _run() -> None:
        if future.cancelled():
            return
        try:
            future.set_result(fn())
        except Exception as e:
            future.set_exception(e)

    loop.call_later(max(ms, 0) / 1000, _run)
    return future
