"""
In-memory delaying work queue for gate reconciliation keys.

A key is never handed to two workers at once, and a key added while it is
being processed is queued again once the worker marks it done.
"""

from __future__ import annotations

import asyncio
from typing import Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)


class QueueShutDown(Exception):
    """Raised by ``get`` once the queue has been shut down."""


class DelayingWorkQueue(Generic[K]):
    """
    asyncio-backed work queue for reconciliation keys.

    - A key is queued at most once; adding a queued key is a no-op.
    - A key handed out by ``get`` is "processing" until ``done`` is called.
      Adding it meanwhile marks it dirty, and it is queued again on ``done``,
      so two workers never process the same key at once.
    - ``add_after`` schedules an add; when several are pending for the same
      key, the earliest one wins.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[K | None] = asyncio.Queue()
        self._queued: set[K] = set()
        self._processing: set[K] = set()
        self._dirty: set[K] = set()
        self._timers: dict[K, asyncio.TimerHandle] = {}
        self._shutting_down = False

    def add(self, key: K) -> None:
        if self._shutting_down:
            return
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    def add_after(self, key: K, delay: float) -> None:
        if self._shutting_down:
            return
        if delay <= 0:
            self._cancel_timer(key)
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        when = loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing.when() <= when:
                return
            existing.cancel()
        self._timers[key] = loop.call_at(when, self._fire, key)

    def _fire(self, key: K) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def _cancel_timer(self, key: K) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    async def get(self) -> K:
        key = await self._queue.get()
        if key is None:
            # Wake the next waiting worker as well
            self._queue.put_nowait(None)
            raise QueueShutDown()
        self._queued.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: K) -> None:
        self._processing.discard(key)
        if key in self._dirty:
            self._dirty.discard(key)
            self.add(key)

    def forget(self, key: K) -> None:
        """Cancel any pending delayed add for ``key``."""
        self._cancel_timer(key)
        self._dirty.discard(key)

    def shutdown(self) -> None:
        self._shutting_down = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._queue.put_nowait(None)

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def size(self) -> int:
        return len(self._queued)

    def pending(self) -> int:
        """Number of delayed adds not yet fired."""
        return len(self._timers)
