"""Merging a runtime-editable set of named async streams into one stream."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")

_END: Any = object()


async def _next_or_end(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return _END


class NamedStream(Generic[K, T]):
    """An async stream carrying an identifier.

    A fetch that was started while the stream was part of a set stays with
    the stream, so detaching it never loses an item.
    """

    def __init__(self, id: K, stream: AsyncIterable[T]) -> None:
        self.id = id
        self._iterator: AsyncIterator[T] = aiter(stream)
        self._pending: asyncio.Future[Any] | None = None

    def __aiter__(self) -> NamedStream[K, T]:
        return self

    async def __anext__(self) -> T:
        pending = self._pending
        if pending is None:
            pending = self._fetch()
        self._pending = None
        value = await pending
        if value is _END:
            raise StopAsyncIteration
        return value

    def _fetch(self) -> asyncio.Future[Any]:
        if self._pending is None:
            self._pending = asyncio.ensure_future(_next_or_end(self._iterator))
        return self._pending

    def __repr__(self) -> str:
        return f"NamedStream(id={self.id!r}, ...)"


class _SharedStreams(Generic[K, T]):
    """The streams and wake-up list shared by a set and its handles."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.streams: dict[K, NamedStream[K, T]] = {}
        self.waiters: list[asyncio.Future[None]] = []

    def notify(self) -> None:
        waiters, self.waiters = self.waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _take_ready(self, entry: NamedStream[K, T], fut: asyncio.Future[Any]) -> Any:
        """Consume a finished fetch; returns ``_END`` when the stream is over."""
        entry._pending = None
        value = fut.result()
        if value is _END:
            with self.lock:
                if self.streams.get(entry.id) is entry:
                    del self.streams[entry.id]
        return value

    async def next_item(self) -> tuple[K, T]:
        while True:
            with self.lock:
                entries = list(self.streams.values())
            if not entries:
                raise StopAsyncIteration
            fetches = [(entry, entry._fetch()) for entry in entries]
            for entry, fut in fetches:
                if fut.done() and entry._pending is fut:
                    value = self._take_ready(entry, fut)
                    if value is not _END:
                        return entry.id, value
            if any(fut.done() for _, fut in fetches):
                # A stream ended, or another consumer took a result; rescan.
                continue
            changed = asyncio.get_running_loop().create_future()
            self.waiters.append(changed)
            try:
                await asyncio.wait(
                    {fut for _, fut in fetches} | {changed},
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                if changed in self.waiters:
                    self.waiters.remove(changed)


class DynamicStreamSet(Generic[K, T]):
    """A set of named streams that can be attached and detached while it is read.

    Iterating yields ``(id, item)`` pairs from whichever stream is ready.
    Streams that end are removed; iteration ends once the set is empty.
    """

    def __init__(self) -> None:
        self._shared: _SharedStreams[K, T] = _SharedStreams()

    def attach(self, source: NamedStream[K, T]) -> NamedStream[K, T] | None:
        """Add ``source``, returning the stream it replaced under the same id, if any."""
        with self._shared.lock:
            previous = self._shared.streams.pop(source.id, None)
            self._shared.streams[source.id] = source
        self._shared.notify()
        return previous

    def attach_stream(self, id: K, source: AsyncIterable[T]) -> NamedStream[K, T] | None:
        """Add ``source`` under ``id``, returning any stream it replaced."""
        return self.attach(NamedStream(id, source))

    def detach(self, id: K) -> NamedStream[K, T] | None:
        """Remove and return the stream under ``id``, or ``None`` if there is none."""
        with self._shared.lock:
            removed = self._shared.streams.pop(id, None)
        if removed is not None:
            self._shared.notify()
        return removed

    def handle(self) -> DynamicStreamSetHandle[K, T]:
        """A separate iterator over the same set of streams."""
        return DynamicStreamSetHandle(self._shared)

    def __len__(self) -> int:
        with self._shared.lock:
            return len(self._shared.streams)

    def __aiter__(self) -> DynamicStreamSet[K, T]:
        return self

    async def __anext__(self) -> tuple[K, T]:
        return await self._shared.next_item()


class DynamicStreamSetHandle(Generic[K, T]):
    """Reads from the streams of a :class:`DynamicStreamSet` it was made from."""

    def __init__(self, shared: _SharedStreams[K, T]) -> None:
        self._shared = shared

    def __aiter__(self) -> DynamicStreamSetHandle[K, T]:
        return self

    async def __anext__(self) -> tuple[K, T]:
        return await self._shared.next_item()