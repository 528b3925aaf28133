"""Fusing for async iterators that can fail."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")


class TryFuseStream(Generic[T]):
    """Ends an async iterator for good after it is exhausted or raises.

    An exception from the source is passed on once; every later step then
    ends iteration, and the source is dropped.
    """

    def __init__(self, source: AsyncIterable[T]) -> None:
        self._source: AsyncIterator[T] | None = aiter(source)
        self._failed = False

    def __aiter__(self) -> TryFuseStream[T]:
        return self

    async def __anext__(self) -> T:
        source = self._source
        if source is None:
            raise StopAsyncIteration
        try:
            return await anext(source)
        except StopAsyncIteration:
            self._source = None
            raise
        except Exception:
            self._source = None
            self._failed = True
            raise

    def is_terminated(self) -> bool:
        """Whether the stream has ended, by exhaustion or by error."""
        return self._source is None

    def failed(self) -> bool:
        """Whether the stream ended because the source raised."""
        return self._failed


def try_fuse(source: AsyncIterable[T]) -> TryFuseStream[T]:
    """Wrap ``source`` so it stays finished after its end or first error."""
    return TryFuseStream(source)