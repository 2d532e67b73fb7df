"""OneShot: a completion signal that fires exactly once.

Sync code checks .fired or registers a callback; async code awaits it.
"""

from __future__ import annotations

import asyncio
from typing import Callable


class OneShot:
    """Single-fulfilment broadcast. Never resets."""

    __slots__ = ("_fired", "_callbacks", "_waiters")

    def __init__(self) -> None:
        self._fired = False
        self._callbacks: list[Callable[[], None]] = []
        self._waiters: list[asyncio.Future] = []

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self) -> bool:
        """Fire the signal. Returns False if it had already fired."""
        if self._fired:
            return False
        self._fired = True
        callbacks, self._callbacks = self._callbacks, []
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        for callback in callbacks:
            callback()
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Call callback() on fire, or right away if already fired."""
        if self._fired:
            callback()
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        if self._fired:
            return
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    def __await__(self):
        return self.wait().__await__()

    def __repr__(self) -> str:
        return f"OneShot({'fired' if self._fired else 'pending'})"
