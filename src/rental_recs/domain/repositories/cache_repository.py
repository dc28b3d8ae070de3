from abc import ABC, abstractmethod
from typing import Any, Optional


class CacheRepository(ABC):
    """Key-value store with TTL and a lock primitive for compute-once coordination"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def acquire_lock(self, name: str, ttl_seconds: int) -> Optional[str]:
        """Return an ownership token, or None when another holder has the lock"""
        pass

    @abstractmethod
    async def release_lock(self, name: str, token: str) -> bool:
        pass
