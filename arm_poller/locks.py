import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from loguru import logger


class LockRegistry:
    """Named mutual-exclusion locks, one per resource family.

    A family lock is held for a whole submit-and-poll sequence, so two callers
    mutating the same family never have remote writes in flight at once.
    """

    def __init__(self):
        # asyncio locks bind to the loop that first waits on them
        self._locks = weakref.WeakKeyDictionary()
        self.logger = logger

    def _lock_for(self, name: str) -> asyncio.Lock:
        locks = self._locks.setdefault(asyncio.get_running_loop(), {})
        lock = locks.get(name)
        if lock is None:
            lock = locks[name] = asyncio.Lock()
        return lock

    def held(self, family: str, key: Optional[str] = None) -> bool:
        name = self._name(family, key)
        return any(
            locks[name].locked() for locks in list(self._locks.values()) if name in locks
        )

    @staticmethod
    def _name(family: str, key: Optional[str]) -> str:
        return family if key is None else f"{family}/{key}"

    @asynccontextmanager
    async def hold(self, family: str, key: Optional[str] = None) -> AsyncIterator[None]:
        name = self._name(family, key)
        lock = self._lock_for(name)
        self.logger.debug(f"Waiting for lock {name}")
        async with lock:
            self.logger.debug(f"Acquired lock {name}")
            try:
                yield
            finally:
                self.logger.debug(f"Released lock {name}")


resource_locks = LockRegistry()
