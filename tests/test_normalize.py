"""Tests for option(), next_() and next_undefined()."""

import asyncio
import concurrent.futures

import pytest

from varfx import UNDEFINED, Variable, next_, next_undefined, option, settle


def _recorder():
    received = []
    return received, lambda value, error: received.append(value)


class TestOption:
    def test_plain_value(self, queue):
        v = option(5)
        assert v.value == 5
        received, listener = _recorder()
        v.listen(listener)
        queue.drain()
        assert received == [5]

    def test_none_is_a_value(self):
        assert option(None).value is None

    def test_listenable_is_forwarded(self, queue):
        source = Variable(lambda emit: emit("a"))
        v = option(source)
        received, listener = _recorder()
        v.listen(listener)
        queue.drain()
        assert received == [UNDEFINED, "a"]
        source.emit("b")
        queue.drain()
        assert received[-1] == "b"

    def test_close_releases_listenable(self):
        source = Variable(lambda emit: None)
        v = option(source)
        assert source.listener_count == 1
        v.listen(lambda value, error: None)()
        assert source.is_closed

    @pytest.mark.asyncio
    async def test_future(self):
        future = asyncio.get_running_loop().create_future()
        v = option(future)
        received, listener = _recorder()
        v.listen(listener)
        future.set_result(3)
        await settle()
        assert received == [UNDEFINED, 3]

    @pytest.mark.asyncio
    async def test_coroutine(self):
        async def load():
            return 4

        v = option(load())
        received, listener = _recorder()
        v.listen(listener)
        await settle()
        assert received[-1] == 4

    @pytest.mark.asyncio
    async def test_concurrent_future(self):
        cf = concurrent.futures.Future()
        v = option(cf)
        received, listener = _recorder()
        v.listen(listener)
        cf.set_result("threaded")
        for _ in range(5):
            await settle()
            if received[-1:] == ["threaded"]:
                break
        assert received[-1] == "threaded"

    @pytest.mark.asyncio
    async def test_rejected_future_is_undefined_not_error(self):
        future = asyncio.get_running_loop().create_future()
        v = option(future)
        log = []
        v.listen(lambda value, error: log.append((value, error)))
        future.set_exception(ValueError("rejected"))
        await settle()
        assert log
        assert all(value is UNDEFINED and error is None for value, error in log)

    @pytest.mark.asyncio
    async def test_cancelled_future_is_undefined(self):
        future = asyncio.get_running_loop().create_future()
        v = option(future)
        future.cancel()
        await settle()
        assert v.has_emitted
        assert v.value is UNDEFINED

    @pytest.mark.asyncio
    async def test_close_detaches_future(self, caplog):
        future = asyncio.get_running_loop().create_future()
        v = option(future)
        v.listen(lambda value, error: None)()
        assert v.is_closed
        future.set_result(1)
        await settle()
        assert "ERROR" not in caplog.text
        assert v.value is UNDEFINED


class TestNext:
    @pytest.mark.asyncio
    async def test_resolves_on_first_defined_value(self):
        source = Variable(lambda emit: None)
        pending = next_(source)
        source.emit("x")
        assert await pending == "x"
        assert source.is_closed

    @pytest.mark.asyncio
    async def test_skips_undefined(self):
        source = Variable(lambda emit: None)
        keep = source.listen(lambda value, error: None)
        pending = next_(source)
        await settle()
        assert not pending.done()
        source.emit(0)
        assert await pending == 0
        assert source.listener_count == 1
        keep()

    @pytest.mark.asyncio
    async def test_error_rejects(self):
        source = Variable(lambda emit: None)
        pending = next_(source)
        source.emit(UNDEFINED, ValueError("boom"))
        with pytest.raises(ValueError, match="boom"):
            await pending
        assert source.is_closed

    @pytest.mark.asyncio
    async def test_cancel_releases_subscription(self):
        source = Variable(lambda emit: None)
        source.listen(lambda value, error: None)
        pending = next_(source)
        assert source.listener_count == 2
        pending.cancel()
        await settle()
        assert source.listener_count == 1

    @pytest.mark.asyncio
    async def test_plain_value(self):
        assert await next_(5) == 5


class TestNextUndefined:
    @pytest.mark.asyncio
    async def test_resolves_on_undefined(self):
        source = Variable(lambda emit: emit(1))
        pending = next_undefined(source)
        await settle()
        assert not pending.done()
        source.emit(UNDEFINED)
        assert await pending is None

    @pytest.mark.asyncio
    async def test_error_rejects(self):
        source = Variable(lambda emit: emit(1))
        pending = next_undefined(source)
        source.emit(1, KeyError("gone"))
        with pytest.raises(KeyError):
            await pending
