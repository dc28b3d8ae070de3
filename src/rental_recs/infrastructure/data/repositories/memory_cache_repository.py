import asyncio
import copy
import logging
import time
import uuid
from typing import Any, Dict, Optional, Tuple

from ....domain.repositories.cache_repository import CacheRepository


class InMemoryCacheRepository(CacheRepository):
    """Process-local cache store for single-instance deployments without Redis"""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._values: Dict[str, Tuple[Any, float]] = {}
        self._locks: Dict[str, Tuple[str, float]] = {}
        self._mutex = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    async def get(self, key: str) -> Optional[Any]:
        async with self._mutex:
            entry = self._values.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._values[key]
                return None
            return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        async with self._mutex:
            self._values[key] = (copy.deepcopy(value), self._clock() + ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        async with self._mutex:
            return self._values.pop(key, None) is not None

    async def acquire_lock(self, name: str, ttl_seconds: int) -> Optional[str]:
        async with self._mutex:
            held = self._locks.get(name)
            if held is not None and held[1] > self._clock():
                return None
            token = uuid.uuid4().hex
            self._locks[name] = (token, self._clock() + ttl_seconds)
            return token

    async def release_lock(self, name: str, token: str) -> bool:
        async with self._mutex:
            held = self._locks.get(name)
            if held is None or held[0] != token:
                return False
            del self._locks[name]
            return True

    async def health_check(self) -> bool:
        return True
