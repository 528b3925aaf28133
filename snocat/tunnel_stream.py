"""Duplex byte streams: an in-memory pair, and a wrapper joining any reader and writer."""

from __future__ import annotations

import asyncio
from typing import Any


class _Pipe:
    """One direction of an in-memory duplex: a byte buffer with an end-of-stream flag."""

    def __init__(self, max_buf_size: int) -> None:
        self._buffer = bytearray()
        self._max = max_buf_size
        self._closed = False
        self._waiters: list[asyncio.Future[None]] = []

    def _wake(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    async def _wait(self) -> None:
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    async def read(self, n: int) -> bytes:
        if n == 0:
            return b""
        if n < 0:
            chunks = bytearray()
            while True:
                if self._buffer:
                    chunks += self._buffer
                    self._buffer.clear()
                    self._wake()
                elif self._closed:
                    return bytes(chunks)
                else:
                    await self._wait()
        while not self._buffer and not self._closed:
            await self._wait()
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        self._wake()
        return data

    def write(self, data: bytes) -> None:
        if self._closed:
            raise BrokenPipeError("write after end of stream")
        if data:
            self._buffer += data
            self._wake()

    async def drain(self) -> None:
        while len(self._buffer) > self._max:
            await self._wait()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._wake()


async def _read_exactly(reader: Any, n: int) -> bytes:
    collected = bytearray()
    while len(collected) < n:
        chunk = await reader.read(n - len(collected))
        if not chunk:
            raise asyncio.IncompleteReadError(bytes(collected), n)
        collected += chunk
    return bytes(collected)


class DuplexStream:
    """One end of an in-memory duplex connection.

    Writes are buffered for the other end; :meth:`drain` waits until the
    buffered amount is no more than the pair's maximum buffer size.
    """

    def __init__(self, incoming: _Pipe, outgoing: _Pipe) -> None:
        self._incoming = incoming
        self._outgoing = outgoing

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes, or everything until end of stream if ``n`` is negative.

        Returns ``b""`` once the other end has ended its writes and the buffer is empty.
        """
        return await self._incoming.read(n)

    async def readexactly(self, n: int) -> bytes:
        """Read exactly ``n`` bytes, raising :class:`asyncio.IncompleteReadError` on early end."""
        return await _read_exactly(self, n)

    def write(self, data: bytes) -> None:
        """Queue ``data`` for the other end; raises :class:`BrokenPipeError` after ``write_eof``."""
        self._outgoing.write(bytes(data))

    async def drain(self) -> None:
        """Wait until the other end has consumed enough to be within the buffer limit."""
        await self._outgoing.drain()

    def write_eof(self) -> None:
        """End this side's writes; the other end reads end of stream after the buffer."""
        self._outgoing.close()


def duplex(max_buf_size: int) -> tuple[DuplexStream, DuplexStream]:
    """Create a connected pair of in-memory streams."""
    a_to_b = _Pipe(max_buf_size)
    b_to_a = _Pipe(max_buf_size)
    return DuplexStream(b_to_a, a_to_b), DuplexStream(a_to_b, b_to_a)


class WrappedStream:
    """A single duplex stream made of a separate reader and writer.

    The reader needs an async ``read(n)``; the writer needs ``write``,
    an async ``drain`` and ``write_eof``.
    """

    def __init__(self, reader: Any, writer: Any) -> None:
        self.reader = reader
        self.writer = writer

    @classmethod
    def duplex(cls, max_buf_size: int) -> tuple[WrappedStream, WrappedStream]:
        """Create a connected pair of wrapped in-memory streams."""
        a, b = duplex(max_buf_size)
        return cls(a, a), cls(b, b)

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes from the reader."""
        return await self.reader.read(n)

    async def readexactly(self, n: int) -> bytes:
        """Read exactly ``n`` bytes, raising :class:`asyncio.IncompleteReadError` on early end."""
        return await _read_exactly(self.reader, n)

    def write(self, data: bytes) -> None:
        """Write ``data`` to the writer."""
        self.writer.write(data)

    async def drain(self) -> None:
        """Wait for the writer to flush."""
        await self.writer.drain()

    def write_eof(self) -> None:
        """Shut down the writing half."""
        self.writer.write_eof()