"""Normalization: plain values, futures and listenables as one shape.

Combinators accept any "option": a plain value, something awaitable
(asyncio future, task, coroutine, or a concurrent.futures.Future), or a
listenable. feed() is the single place that tells them apart.

A future that fails or is cancelled counts as "no value" (UNDEFINED), not
as an emitted error.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
from typing import Any, Callable

from varfx.sentinel import UNDEFINED
from varfx.variable import Unlisten, Variable

logger = logging.getLogger("varfx.normalize")


def is_listenable(obj: object) -> bool:
    return callable(getattr(obj, "listen", None))


def is_future(obj: object) -> bool:
    return isinstance(obj, concurrent.futures.Future) or inspect.isawaitable(obj)


def _as_future(obj) -> asyncio.Future:
    if isinstance(obj, concurrent.futures.Future):
        return asyncio.wrap_future(obj)
    return asyncio.ensure_future(obj)


def _settled_value(future: asyncio.Future):
    if future.cancelled():
        return UNDEFINED
    error = future.exception()
    if error is not None:
        logger.debug("Future option rejected, treating as UNDEFINED: %r", error)
        return UNDEFINED
    return future.result()


def feed(source, resolve: Callable[[Any], None]) -> Unlisten | None:
    """Send every value of source to resolve(value).

    Listenables are listened to (errors are dropped, their value still
    counts). Futures call resolve once they settle. Plain values are
    resolved right away. Returns a function that stops the feed, or None
    for plain values.
    """
    if is_listenable(source):
        return source.listen(lambda value, error: resolve(value))
    if is_future(source):
        future = _as_future(source)

        def _on_done(done: asyncio.Future) -> None:
            resolve(_settled_value(done))

        future.add_done_callback(_on_done)
        return lambda: future.remove_done_callback(_on_done)
    resolve(source)
    return None


def option(value) -> Variable:
    """Wrap a plain value, future, or listenable as a Variable."""
    unlisten: Unlisten | None = None

    def executor(emit) -> None:
        nonlocal unlisten
        unlisten = feed(value, emit)

    result = Variable(executor)

    def _close() -> None:
        nonlocal unlisten
        if unlisten is not None:
            unlisten()
            unlisten = None

    result.on_close(_close)
    return result


def _one_shot(source, accept: Callable[[Any], bool], result: Callable[[Any], Any]) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    if not is_listenable(source):
        source = option(source)

    def _on_value(value, error) -> None:
        if future.done():
            return
        if error is not None:
            unlisten()
            future.set_exception(error)
        elif accept(value):
            unlisten()
            future.set_result(result(value))

    unlisten = source.listen(_on_value)
    # Cancelling the future releases the subscription too.
    future.add_done_callback(lambda _: unlisten())
    return future


def next_(source) -> asyncio.Future:
    """Future for the first value of source that is not UNDEFINED.

    An emitted error rejects the future. Either way the subscription ends.
    Must be called with a running event loop.

    Usage:
        user = Variable(lambda emit: None)
        pending = next_(user)
        user.emit("alice")
        assert await pending == "alice"
    """
    return _one_shot(source, lambda value: value is not UNDEFINED, lambda value: value)


def next_undefined(source) -> asyncio.Future:
    """Future resolved (with None) on the first UNDEFINED value of source."""
    return _one_shot(source, lambda value: value is UNDEFINED, lambda value: None)
