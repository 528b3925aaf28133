"""Awaitables that register with a tracker while they run."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Generator
from enum import Enum, auto
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class TaskTracker(Protocol):
    """Registers asynchronously; deregisters synchronously through ``release``."""

    def register(self) -> Awaitable[TaskTracker]:
        """Return an awaitable producing the registered tracker."""

    def release(self) -> None:
        """Drop whatever registration this tracker holds."""


class _State(Enum):
    NOT_STARTED = auto()
    REGISTERING = auto()
    RUNNING = auto()
    COMPLETED = auto()


class Tracked(Generic[T]):
    """Wraps an awaitable so that a tracker is registered for the time it runs.

    Registration happens lazily, on the first await. The tracker is released
    once the inner awaitable finishes, fails, is cancelled, or on ``close``.
    """

    def __init__(self, awaitable: Awaitable[T], tracker: TaskTracker) -> None:
        self._awaitable: Awaitable[T] | None = awaitable
        self._tracker: TaskTracker | None = tracker
        self._state = _State.NOT_STARTED

    def __await__(self) -> Generator[Any, None, T]:
        return self._run().__await__()

    async def _run(self) -> T:
        if self._state is not _State.NOT_STARTED:
            raise RuntimeError("tracked task awaited more than once")
        self._state = _State.REGISTERING
        unregistered = self._tracker
        self._tracker = None
        try:
            registered = await unregistered.register()
        except BaseException:
            self._state = _State.COMPLETED
            self._close_awaitable()
            raise
        if self._state is _State.COMPLETED:
            registered.release()
            raise RuntimeError("tracked task was closed during registration")
        self._tracker = registered
        self._state = _State.RUNNING
        awaitable = self._awaitable
        self._awaitable = None
        try:
            return await awaitable
        finally:
            self._state = _State.COMPLETED
            self._release_tracker()

    def _release_tracker(self) -> None:
        tracker = self._tracker
        self._tracker = None
        if tracker is not None:
            tracker.release()

    def _close_awaitable(self) -> None:
        awaitable = self._awaitable
        self._awaitable = None
        if inspect.iscoroutine(awaitable):
            awaitable.close()

    def close(self) -> None:
        """Abandon the task and release its tracker."""
        state = self._state
        self._state = _State.COMPLETED
        if state in (_State.NOT_STARTED, _State.REGISTERING):
            self._close_awaitable()
        self._release_tracker()

    def is_terminated(self) -> bool:
        """Whether the task has completed or been closed."""
        return self._state is _State.COMPLETED


def track(awaitable: Awaitable[T], tracker: TaskTracker) -> Tracked[T]:
    """Wrap ``awaitable`` so ``tracker`` is registered while it runs."""
    return Tracked(awaitable, tracker)