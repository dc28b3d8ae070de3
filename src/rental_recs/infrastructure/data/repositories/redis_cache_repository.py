import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ....domain.exceptions import StoreUnavailableError
from ....domain.repositories.cache_repository import CacheRepository


# Delete the lock only if it still carries our token
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisCacheRepository(CacheRepository):
    """Redis-backed cache for recommendation lists and their compute locks.

    Values are stored as JSON envelopes carrying ``cached_at`` and ``ttl`` so
    readers can reject stale entries even when the server-side expiry lags.
    Redis failures surface as ``StoreUnavailableError``.
    """

    def __init__(self, redis_client: Redis, default_ttl: int = 3600, key_prefix: str = ""):
        self.redis = redis_client
        self.default_ttl = default_ttl
        self.key_prefix = key_prefix
        self.logger = logging.getLogger(__name__)

    async def get(self, key: str) -> Optional[Any]:
        full_key = self.key_prefix + key
        try:
            cached_data = await self.redis.get(full_key)
            if not cached_data:
                return None

            data = json.loads(cached_data)
            if self._is_cache_valid(data):
                self.logger.debug(f"Cache hit for key: {key}")
                return data.get('payload')

            # Remove expired cache
            await self.redis.delete(full_key)
            self.logger.debug(f"Cache expired for key: {key}")
            return None

        except RedisError as e:
            raise StoreUnavailableError(f"Failed to read cache key {key}: {e}") from e
        except (TypeError, ValueError) as e:
            self.logger.warning(f"Dropping undecodable cache entry {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        ttl = ttl_seconds or self.default_ttl
        cache_data = {
            'payload': value,
            'cached_at': datetime.utcnow().isoformat(),
            'ttl': ttl,
            'key': key
        }
        serialized_data = json.dumps(cache_data, default=self._json_serializer)

        try:
            success = await self.redis.setex(self.key_prefix + key, ttl, serialized_data)
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to write cache key {key}: {e}") from e

        if success:
            self.logger.debug(f"Cached value for key: {key}, TTL: {ttl}s")
            return True
        self.logger.warning(f"Failed to cache value for key: {key}")
        return False

    async def delete(self, key: str) -> bool:
        try:
            deleted = await self.redis.delete(self.key_prefix + key)
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to delete cache key {key}: {e}") from e
        return deleted > 0

    async def acquire_lock(self, name: str, ttl_seconds: int) -> Optional[str]:
        token = uuid.uuid4().hex
        try:
            acquired = await self.redis.set(self.key_prefix + name, token, nx=True, ex=ttl_seconds)
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to acquire lock {name}: {e}") from e

        if acquired:
            self.logger.debug(f"Acquired lock {name}")
            return token
        return None

    async def release_lock(self, name: str, token: str) -> bool:
        try:
            released = await self.redis.eval(RELEASE_LOCK_SCRIPT, 1, self.key_prefix + name, token)
        except RedisError as e:
            raise StoreUnavailableError(f"Failed to release lock {name}: {e}") from e

        if not released:
            self.logger.warning(f"Lock {name} expired or was taken over before release")
        return bool(released)

    async def health_check(self) -> bool:
        """Check Redis connection health"""
        try:
            await self.redis.ping()
            return True
        except Exception as e:
            self.logger.error(f"Redis health check failed: {e}")
            return False

    def _is_cache_valid(self, cache_data: Dict) -> bool:
        """Check if cached data is still valid based on TTL"""
        try:
            cached_at = datetime.fromisoformat(cache_data['cached_at'])
            ttl_seconds = cache_data.get('ttl', self.default_ttl)

            return datetime.utcnow() - cached_at < timedelta(seconds=ttl_seconds)

        except (KeyError, TypeError, ValueError):
            return False

    def _json_serializer(self, obj):
        """Custom JSON serializer for complex objects"""
        if isinstance(obj, datetime):
            return obj.isoformat()
        elif hasattr(obj, 'to_dict'):
            return obj.to_dict()

        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
