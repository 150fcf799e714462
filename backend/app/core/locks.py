"""
In-process keyed locks.

Serializes units of work on the same invoice inside one worker. Cross-worker
serialization is the database's job (row lock + version counter).
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict


class KeyedLock:
    """
    One asyncio.Lock per key, dropped once no caller holds or waits on it.
    """
    def __init__(self):
        self._locks: Dict[Any, asyncio.Lock] = {}
        self._waiters: Dict[Any, int] = {}

    @asynccontextmanager
    async def hold(self, key: Any):
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_held(self, key: Any) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


# Global registry used by the invoice lifecycle
invoice_locks = KeyedLock()
