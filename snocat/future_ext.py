"""Combinators for delaying and bounding awaitables."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

T = TypeVar("T")

Duration = float | timedelta


def _seconds(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


async def delay(awaitable: Awaitable[T], duration: Duration) -> T:
    """Await ``awaitable``, then wait ``duration`` before handing over its outcome.

    Failures are delayed just like successes.
    """
    seconds = _seconds(duration)
    try:
        result = await awaitable
    except Exception:
        await asyncio.sleep(seconds)
        raise
    await asyncio.sleep(seconds)
    return result


async def try_delay(awaitable: Awaitable[T], duration: Duration) -> T:
    """Await ``awaitable`` and delay only a successful result; failures raise at once."""
    result = await awaitable
    await asyncio.sleep(_seconds(duration))
    return result


async def _race(awaitable: Awaitable[T], cancellation: Awaitable[Any]) -> tuple[bool, T | None]:
    """Run ``awaitable`` until it finishes or ``cancellation`` completes.

    Returns ``(True, result)`` when the task won and ``(False, None)`` when it
    was cut off; the cancellation is checked first, so it wins ties.
    """
    task = asyncio.ensure_future(awaitable)
    canceller = asyncio.ensure_future(cancellation)
    try:
        await asyncio.wait({task, canceller}, return_when=asyncio.FIRST_COMPLETED)
        if canceller.done():
            if not canceller.cancelled():
                canceller.exception()
            return False, None
        return True, task.result()
    finally:
        leftovers = {f for f in (task, canceller) if not f.done()}
        for f in leftovers:
            f.cancel()
        if leftovers:
            await asyncio.wait(leftovers)


async def poll_until(awaitable: Awaitable[T], cancellation: Awaitable[Any]) -> T | None:
    """Return the result of ``awaitable``, or ``None`` if ``cancellation`` completes first.

    The abandoned awaitable is cancelled. Exceptions from ``awaitable`` propagate.
    """
    _, value = await _race(awaitable, cancellation)
    return value


async def try_poll_until_or_else(
    awaitable: Awaitable[T],
    cancellation: Awaitable[Any],
    make_alternate: Callable[[], T],
) -> T:
    """Like :func:`poll_until`, but on cancellation return (or raise) ``make_alternate()``."""
    finished, value = await _race(awaitable, cancellation)
    if finished:
        return value  # type: ignore[return-value]
    return make_alternate()