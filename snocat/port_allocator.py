"""Allocation of ports from an inclusive range, with handles that free on release."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any

_log = logging.getLogger(__name__)

_MAX_PORT = 0xFFFF


def _check_port(name: str, value: int) -> int:
    port = int(value)
    if not 0 <= port <= _MAX_PORT:
        raise ValueError(f"{name} port {value!r} is outside 0..={_MAX_PORT}")
    return port


class NoFreePortsError(Exception):
    """Every port in the allocator's range is already allocated."""

    def __init__(self, start: int, end: int) -> None:
        super().__init__(f"No ports were available to be allocated in range {start}..={end}")
        self.start = start
        self.end = end


class PortRangeAllocator:
    """Hands out the lowest free port of an inclusive range.

    Copies share nothing; share the allocator object itself between owners.
    Ports released from a handle while the allocator is busy are queued and
    swept up by the next :meth:`allocate` or :meth:`free`.
    """

    def __init__(self, start: int, end: int) -> None:
        self._start = _check_port("start", start)
        self._end = _check_port("end", end)
        self._allocated: set[int] = set()
        self._lock = threading.Lock()
        self._marks: deque[int] = deque()

    def _sweep_marks(self) -> None:
        while True:
            try:
                marked = self._marks.popleft()
            except IndexError:
                return
            if marked in self._allocated:
                self._allocated.discard(marked)
                _log.debug("unbound marked port %d", marked)

    async def allocate(self) -> PortRangeAllocationHandle:
        """Allocate the lowest free port, raising :class:`NoFreePortsError` if none is left."""
        with self._lock:
            self._sweep_marks()
            port = next(
                (p for p in self.range() if p not in self._allocated),
                None,
            )
            if port is None:
                raise NoFreePortsError(self._start, self._end)
            self._allocated.add(port)
        return PortRangeAllocationHandle(port, self)

    async def free(self, port: int) -> bool:
        """Free ``port``, returning whether it had been allocated."""
        with self._lock:
            removed = port in self._allocated
            if removed:
                self._allocated.discard(port)
                _log.debug("unbound port %d", port)
            self._sweep_marks()
        return removed

    def mark_freed(self, port: int) -> None:
        """Free ``port`` without waiting; queued for later if the allocator is busy."""
        if self._lock.acquire(blocking=False):
            try:
                self._allocated.discard(port)
            finally:
                self._lock.release()
        else:
            self._marks.append(port)

    def range(self) -> range:
        """The ports this allocator hands out, as a Python range."""
        return range(self._start, self._end + 1)

    def __repr__(self) -> str:
        return f"PortRangeAllocator({self._start}..={self._end})"


class PortRangeAllocationHandle:
    """Owns one allocated port and frees it on release, on leaving ``with``, or on collection."""

    def __init__(self, port: int, allocator: PortRangeAllocator) -> None:
        self._port = port
        self._allocator: PortRangeAllocator | None = allocator

    def port(self) -> int:
        """The allocated port number."""
        return self._port

    def release(self) -> None:
        """Free the port; later calls do nothing."""
        allocator = self._allocator
        self._allocator = None
        if allocator is not None:
            allocator.mark_freed(self._port)

    def __enter__(self) -> PortRangeAllocationHandle:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.release()

    def __del__(self) -> None:
        if getattr(self, "_allocator", None) is not None:
            self.release()

    def __repr__(self) -> str:
        state = "held" if self._allocator is not None else "released"
        return f"PortRangeAllocationHandle(port={self._port}, {state})"