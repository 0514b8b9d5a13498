"""
Per-key mutual exclusion for reconciliation passes.

kopf serialises change handlers per object, but timers run in their own
tasks, so a resync pass and a change-triggered pass for the same object can
overlap. Every pass for a key runs under that key's lock.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    A family of asyncio locks, one per key, created on demand.

    Locks are dropped once no task holds or waits for them, so the mapping
    only ever holds keys with passes in flight.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1

        if lock.locked():
            logger.debug(f"Waiting for in-flight reconciliation of {key}")

        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def locked(self, key: Hashable) -> bool:
        """Whether a pass for ``key`` currently holds the lock."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
