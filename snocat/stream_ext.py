"""Concurrent processing of async iterables with a live count of running tasks."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

from snocat.ready import lift_future
from snocat.tracked import Tracked, track

T = TypeVar("T")

_END: Any = object()


class CountWatch:
    """Holds the latest count and wakes waiters whenever a new one is sent.

    Every send counts as a change, even when the value is unchanged. A change
    is consumed by :meth:`changed`; reading with :meth:`borrow` does not
    consume it. Meant to be used from the thread running the event loop.
    """

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._version = 0
        self._seen = 0
        self._waiters: list[asyncio.Future[None]] = []

    def send_replace(self, value: int) -> int:
        """Store ``value``, wake all waiters, and return the previous value."""
        previous = self._value
        self._value = value
        self._version += 1
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        return previous

    def borrow(self) -> int:
        """The most recently sent value."""
        return self._value

    async def changed(self) -> None:
        """Wait until a value has been sent that this watch has not yet reported."""
        while self._version == self._seen:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)
                raise
        self._seen = self._version

    def __repr__(self) -> str:
        return f"CountWatch({self._value!r})"


class BoundCounterTracker:
    """A task tracker that keeps a shared set of registrations and publishes its size.

    ``counter`` is a set shared by every tracker that reports to the same
    ``notifier``; each registered tracker holds one entry in it. Registering
    twice keeps the first registration, so a tracker may be registered ahead
    of its task being started.
    """

    def __init__(self, notifier: CountWatch, counter: set[object]) -> None:
        self._notifier = notifier
        self._counter = counter
        self._entry: object | None = None

    @classmethod
    def preregistered(cls, notifier: CountWatch, counter: set[object]) -> BoundCounterTracker:
        """Create a tracker that is counted immediately rather than on first await."""
        tracker = cls(notifier, counter)
        tracker._register_now()
        return tracker

    def _register_now(self) -> BoundCounterTracker:
        if self._entry is None:
            entry = object()
            self._counter.add(entry)
            self._entry = entry
            self._notifier.send_replace(len(self._counter))
        return self

    def register(self) -> Awaitable[BoundCounterTracker]:
        """Register (if not already) and return an awaitable yielding this tracker."""
        return lift_future(self._register_now())

    def release(self) -> None:
        """Remove this tracker's registration, publishing the new count."""
        entry = self._entry
        if entry is None:
            return
        self._entry = None
        self._counter.discard(entry)
        self._notifier.send_replace(len(self._counter))

    @property
    def registered(self) -> bool:
        """Whether this tracker currently holds a registration."""
        return self._entry is not None

    def __del__(self) -> None:
        if getattr(self, "_entry", None) is not None:
            self.release()


async def _next_or_end(iterator: AsyncIterator[T]) -> Any:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return _END


async def _drive(tracked: Tracked[Any]) -> Any:
    return await tracked


async def try_for_each_concurrent_monitored(
    source: AsyncIterable[T],
    limit: int | None,
    updater: CountWatch,
    f: Callable[[T], Awaitable[Any]],
) -> None:
    """Run ``f`` on every item of ``source``, at most ``limit`` at once.

    A ``limit`` of ``None`` or ``0`` means no limit. While running, ``updater``
    receives the number of outstanding calls each time it changes. The first
    exception, from the source or from any call, cancels the remaining work
    and is raised.
    """
    if limit is not None and limit < 0:
        raise ValueError("limit must not be negative")
    cap = limit or None
    counter: set[object] = set()
    iterator = aiter(source)
    running: dict[asyncio.Future[Any], Tracked[Any]] = {}
    next_item: asyncio.Future[Any] | None = None
    exhausted = False

    def start(item: T) -> None:
        tracker = BoundCounterTracker.preregistered(updater, counter)
        try:
            awaitable = f(item)
        except BaseException:
            tracker.release()
            raise
        tracked = track(awaitable, tracker)
        running[asyncio.ensure_future(_drive(tracked))] = tracked

    try:
        while True:
            if next_item is None and not exhausted and (cap is None or len(running) < cap):
                next_item = asyncio.ensure_future(_next_or_end(iterator))
            pending: set[asyncio.Future[Any]] = set(running)
            if next_item is not None:
                pending.add(next_item)
            if not pending:
                return
            done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for finished in done:
                if finished is next_item:
                    next_item = None
                    item = finished.result()
                    if item is _END:
                        exhausted = True
                    else:
                        start(item)
                else:
                    running.pop(finished)
                    finished.result()
    finally:
        leftovers = [task for task in running if not task.done()]
        if next_item is not None and not next_item.done():
            leftovers.append(next_item)
        for task in leftovers:
            task.cancel()
        if leftovers:
            await asyncio.wait(leftovers)
        for task, tracked in running.items():
            tracked.close()
            if not task.cancelled():
                task.exception()
        if next_item is not None and next_item.done() and not next_item.cancelled():
            next_item.exception()
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()