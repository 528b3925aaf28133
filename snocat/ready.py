"""Awaitables whose value is known up front."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class _Ready(Generic[T]):
    """An awaitable that completes immediately with a fixed value, exactly once."""

    __slots__ = ("_value", "_done")

    def __init__(self, value: T) -> None:
        self._value: T | None = value
        self._done = False

    def __await__(self) -> Generator[Any, None, T]:
        if self._done:
            raise RuntimeError("ready value awaited after completion")
        self._done = True
        value = self._value
        self._value = None
        return value  # type: ignore[return-value]
        yield  # makes this a generator without ever suspending

    def __repr__(self) -> str:
        state = "done" if self._done else repr(self._value)
        return f"<ready {state}>"


def lift_future(value: T) -> _Ready[T]:
    """Wrap ``value`` in an awaitable that yields it without suspending."""
    return _Ready(value)