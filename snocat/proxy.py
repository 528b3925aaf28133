"""Copying between byte streams, and ordered cleanup for async work."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_log = logging.getLogger(__name__)

PROXY_BUFFER_CAPACITY = 32 * 1024


async def _copy(reader: Any, writer: Any) -> int:
    total = 0
    while True:
        chunk = await reader.read(PROXY_BUFFER_CAPACITY)
        if not chunk:
            return total
        writer.write(chunk)
        await writer.drain()
        total += len(chunk)


async def _copy_then_shutdown(reader: Any, writer: Any) -> int:
    total = await _copy(reader, writer)
    writer.write_eof()
    return total


def _shutdown_quietly(writer: Any) -> None:
    try:
        writer.write_eof()
    except Exception:  # the connection is being torn down anyway
        pass


async def proxy_stream(reader: Any, writer: Any) -> int:
    """Copy everything from ``reader`` to ``writer``, returning the byte count.

    The writer is not shut down afterwards.
    """
    return await _copy(reader, writer)


async def proxy_generic_streams(a: tuple[Any, Any], b: tuple[Any, Any]) -> tuple[int, int]:
    """Copy in both directions between two ``(writer, reader)`` pairs.

    Each direction shuts down its writer when its reader ends; the call
    returns ``(a_to_b, b_to_a)`` byte counts once both are done. The first
    error stops both directions, shuts both writers down, and is raised.
    """
    writer_a, reader_a = a
    writer_b, reader_b = b
    a_to_b = asyncio.ensure_future(_copy_then_shutdown(reader_a, writer_b))
    b_to_a = asyncio.ensure_future(_copy_then_shutdown(reader_b, writer_a))
    tasks = (a_to_b, b_to_a)
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)
    error = next(
        (
            task.exception()
            for task in tasks
            if not task.cancelled() and task.exception() is not None
        ),
        None,
    )
    if error is not None:
        _shutdown_quietly(writer_a)
        _shutdown_quietly(writer_b)
        _log.debug("proxy connection copy failed: %r", error)
        raise error
    return a_to_b.result(), b_to_a.result()


class _Outcome(Generic[T]):
    """The result of the main block, open to inspection and change by the cleanup."""

    def __init__(self, value: T | None = None, error: Exception | None = None) -> None:
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        if self.error is not None:
            return f"<outcome error={self.error!r}>"
        return f"<outcome value={self.value!r}>"


async def finally_async(
    cb: Callable[[], Awaitable[T]],
    cleanup: Callable[[_Outcome[T]], Awaitable[Any]],
) -> T:
    """Run ``cb``, then always run ``cleanup`` with its outcome.

    ``cleanup`` gets an object with ``value``, ``error`` and ``ok`` and may
    alter it. Errors from ``cb`` win over errors from ``cleanup``, which win
    over success.
    """
    outcome: _Outcome[T]
    try:
        outcome = _Outcome(value=await cb())
    except Exception as error:
        outcome = _Outcome(error=error)
    try:
        await cleanup(outcome)
    except Exception as cleanup_error:
        if outcome.error is not None:
            raise outcome.error from cleanup_error
        raise
    if outcome.error is not None:
        raise outcome.error
    return outcome.value  # type: ignore[return-value]