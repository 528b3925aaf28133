import pytest

from snocat.try_stream import TryFuseStream, try_fuse


class Failure(Exception):
    pass


class ScriptedStream:
    """Yields values and raises exceptions without ending on its own."""

    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        item = self._items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


async def _letters():
    yield "a"
    yield "b"


@pytest.mark.asyncio
async def test_try_fused_stream_terminate_after_error():
    fused = try_fuse(ScriptedStream([0, 1, Failure(), 2, 3]))
    res = [await fused.__anext__(), await fused.__anext__()]
    assert res == [0, 1]
    with pytest.raises(Failure):
        await fused.__anext__()
    assert fused.is_terminated() is True
    with pytest.raises(StopAsyncIteration):
        await fused.__anext__()
    assert fused.failed() is True


@pytest.mark.asyncio
async def test_try_fused_stream_terminate_after_end():
    fused = TryFuseStream(ScriptedStream([0, 1, 2]))
    res = [item async for item in fused]
    assert res == [0, 1, 2]
    assert fused.is_terminated() is True
    assert fused.failed() is False
    with pytest.raises(StopAsyncIteration):
        await fused.__anext__()


@pytest.mark.asyncio
async def test_active_stream_is_not_terminated():
    fused = try_fuse(ScriptedStream([5]))
    assert fused.is_terminated() is False
    assert await fused.__anext__() == 5
    assert fused.is_terminated() is False
    assert fused.failed() is False


@pytest.mark.asyncio
async def test_async_generator_source():
    fused = try_fuse(_letters())
    assert [x async for x in fused] == ["a", "b"]
    assert [x async for x in fused] == []
    assert fused.is_terminated() is True