import asyncio
import errno

import pytest

from snocat.proxy import finally_async, proxy_generic_streams, proxy_stream
from snocat.tunnel_stream import duplex

TIMEOUT = 10


async def sendrec(channel, message_to_send, expected_to_receive, send_cue=None, after_sent=None):
    async def receive():
        data = await channel.read(-1)
        assert data == expected_to_receive

    async def send():
        if send_cue is not None:
            await send_cue
        channel.write(message_to_send)
        await channel.drain()
        channel.write_eof()
        if after_sent is not None:
            after_sent()

    await asyncio.gather(receive(), send())


@pytest.mark.asyncio
async def test_proxy_completion_on_end():
    message_from_a = b"Hello world from A!"
    message_from_b = b"Hello world from B!"
    a_to_p, p_to_a = duplex(64)
    p_to_b, b_to_p = duplex(64)

    results = await asyncio.wait_for(
        asyncio.gather(
            sendrec(a_to_p, message_from_a, message_from_b),
            sendrec(b_to_p, message_from_b, message_from_a),
            proxy_generic_streams((p_to_a, p_to_a), (p_to_b, p_to_b)),
        ),
        TIMEOUT,
    )
    assert results[2] == (len(message_from_a), len(message_from_b))


@pytest.mark.asyncio
async def test_proxy_independent_stream_completion():
    message_from_a = b"Hello world from A!"
    message_from_b = b"Hello world from B!"
    a_to_p, p_to_a = duplex(64)
    p_to_b, b_to_p = duplex(64)
    a_completed = asyncio.get_running_loop().create_future()

    results = await asyncio.wait_for(
        asyncio.gather(
            sendrec(
                a_to_p,
                message_from_a,
                message_from_b,
                after_sent=lambda: a_completed.set_result(None),
            ),
            sendrec(b_to_p, message_from_b, message_from_a, send_cue=a_completed),
            proxy_generic_streams((p_to_a, p_to_a), (p_to_b, p_to_b)),
        ),
        TIMEOUT,
    )
    assert results[2] == (len(message_from_a), len(message_from_b))


class ErroringStream:
    async def read(self, n=-1):
        raise OSError(errno.ENOTCONN, "Placeholder failure generator for tests")

    def write(self, data):
        pass

    async def drain(self):
        pass

    def write_eof(self):
        pass


@pytest.mark.asyncio
async def test_proxy_completion_on_any_error():
    p_to_a = ErroringStream()
    p_to_b, b_to_p = duplex(64)

    async def proxy():
        with pytest.raises(OSError) as info:
            await proxy_generic_streams((p_to_a, p_to_a), (p_to_b, p_to_b))
        return info.value.errno

    results = await asyncio.wait_for(
        asyncio.gather(sendrec(b_to_p, b"Hello /dev/null!", b""), proxy()),
        TIMEOUT,
    )
    assert results[1] == errno.ENOTCONN


@pytest.mark.asyncio
async def test_proxy_stream_copies_without_shutdown():
    source, source_peer = duplex(64)
    target, target_peer = duplex(1 << 16)
    payload = bytes(range(256)) * 4
    source_peer.write(payload)
    source_peer.write_eof()

    async def drain_source():
        return await proxy_stream(source, target)

    copied = await asyncio.wait_for(drain_source(), TIMEOUT)
    assert copied == len(payload)
    assert await target_peer.readexactly(len(payload)) == payload
    target.write(b"more")
    assert await target_peer.read(4) == b"more"


@pytest.mark.asyncio
async def test_finally_async_success_passes_value_to_cleanup():
    seen = []

    async def cb():
        return 42

    async def cleanup(outcome):
        seen.append((outcome.ok, outcome.value))

    assert await finally_async(cb, cleanup) == 42
    assert seen == [(True, 42)]


@pytest.mark.asyncio
async def test_finally_async_prefers_main_error():
    async def cb():
        raise KeyError("main")

    async def cleanup(outcome):
        assert isinstance(outcome.error, KeyError)
        raise ValueError("cleanup")

    with pytest.raises(KeyError):
        await finally_async(cb, cleanup)


@pytest.mark.asyncio
async def test_finally_async_cleanup_error_replaces_success():
    async def cb():
        return "done"

    async def cleanup(outcome):
        raise ValueError("cleanup")

    with pytest.raises(ValueError, match="cleanup"):
        await finally_async(cb, cleanup)


@pytest.mark.asyncio
async def test_finally_async_cleanup_may_change_outcome():
    async def cb():
        raise RuntimeError("recoverable")

    async def cleanup(outcome):
        outcome.error = None
        outcome.value = "recovered"

    assert await finally_async(cb, cleanup) == "recovered"