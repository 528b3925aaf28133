"""Objects that notify a listener when they are dropped, unless countered first."""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")

_log = logging.getLogger(__name__)

_EMPTY: Any = object()

_outstanding_lock = threading.Lock()
_outstanding_background = 0


class SharedSlot(Generic[T]):
    """A lock-guarded, optionally empty holder shared between owners.

    Kicking a slot empties it and kicks whatever it held. ``lock`` is exposed
    so that owners can hold the slot while they work with it.
    """

    def __init__(self, value: T | None) -> None:
        self.lock = threading.Lock()
        self._value: T | None = value

    def take(self) -> T | None:
        """Empty the slot, returning what it held (``None`` if already empty).

        Blocks while the lock is held, and deadlocks if held by the same thread.
        """
        with self.lock:
            return self._take_locked()

    def _take_locked(self) -> T | None:
        value = self._value
        self._value = None
        return value

    def __repr__(self) -> str:
        return f"SharedSlot({self._value!r})"


def _send(sender: Any, value: Any) -> None:
    if isinstance(sender, (asyncio.Queue, queue.Queue)):
        try:
            sender.put_nowait(value)
        except (asyncio.QueueFull, queue.Full):
            pass
    elif isinstance(sender, asyncio.Future):
        if not sender.done():
            sender.set_result(value)
    else:
        raise TypeError(f"cannot send a dropkick message through {type(sender).__name__}")


def _background_take(slot: SharedSlot[Any]) -> None:
    global _outstanding_background
    with _outstanding_lock:
        _outstanding_background += 1
        active = _outstanding_background
    _log.debug("shared slot cleanup started due to contention, active count: %d", active)
    try:
        dropkick(slot.take())
    finally:
        with _outstanding_lock:
            _outstanding_background -= 1
            active = _outstanding_background
        _log.debug("shared slot cleanup completed, remaining active count: %d", active)


def _kick_shared(slot: SharedSlot[Any]) -> None:
    if slot.lock.acquire(blocking=False):
        try:
            value = slot._take_locked()
        finally:
            slot.lock.release()
        dropkick(value)
        return
    threading.Thread(
        target=_background_take,
        args=(slot,),
        name="dropkick-shared-slot",
        daemon=True,
    ).start()


def dropkick(target: Any) -> None:
    """Fire the drop notification that belongs to ``target``'s kind.

    - ``None`` does nothing.
    - Objects with a ``dropkick()`` method have it called.
    - A :class:`SharedSlot` is emptied and its contents kicked; if its lock is
      contended, that happens on a background thread once the lock frees.
    - ``(value, sender)`` sends ``value`` on an asyncio or thread queue, or
      resolves an asyncio future; send failures are ignored.
    - A bare queue or future receives ``None``.
    - An asyncio or threading event is set, as a cancellation signal.
    - Any other callable is called.
    """
    if target is None:
        return
    method = getattr(target, "dropkick", None)
    if callable(method):
        method()
    elif isinstance(target, SharedSlot):
        _kick_shared(target)
    elif isinstance(target, tuple) and len(target) == 2:
        value, sender = target
        _send(sender, value)
    elif isinstance(target, (asyncio.Queue, queue.Queue, asyncio.Future)):
        _send(target, None)
    elif isinstance(target, (asyncio.Event, threading.Event)):
        if not target.is_set():
            target.set()
    elif callable(target):
        target()
    else:
        raise TypeError(f"cannot dropkick an object of type {type(target).__name__}")


class Dropkick(Generic[T]):
    """Kicks its target when released, unless countered first.

    Release happens on :meth:`kick`, on leaving a ``with`` block, or when the
    object is garbage-collected.
    """

    def __init__(self, target: T) -> None:
        self._target: Any = target

    @classmethod
    def callback(cls, callback_fn: Callable[[], R]) -> Dropkick[Callable[[], R]]:
        """Create a dropkick that calls ``callback_fn`` when released."""
        return cls(callback_fn)

    def _take(self) -> Any:
        target = self._target
        self._target = _EMPTY
        return target

    def counter(self) -> None:
        """Disarm, so the target is never kicked."""
        self._take()

    def counter_take(self) -> T:
        """Disarm and hand back the target."""
        target = self._take()
        if target is _EMPTY:
            raise RuntimeError("Dropkick dropped before countered")
        return target

    def counter_take_shared(self) -> Any:
        """Empty a :class:`SharedSlot` target, returning its contents.

        The dropkick stays armed but will kick an empty slot. Returns ``None``
        if already released.
        """
        target = self._target
        if target is _EMPTY:
            return None
        if not isinstance(target, SharedSlot):
            raise TypeError("counter_take_shared requires a SharedSlot target")
        return target.take()

    def kick(self) -> None:
        """Release now, kicking the target if still armed."""
        target = self._take()
        if target is not _EMPTY:
            dropkick(target)

    def __enter__(self) -> Dropkick[T]:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.kick()

    def __del__(self) -> None:
        if getattr(self, "_target", _EMPTY) is not _EMPTY:
            self.kick()

    def __repr__(self) -> str:
        if self._target is _EMPTY:
            return "Dropkick(<released>)"
        return f"Dropkick({self._target!r})"