import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from ..entities.recommendation import CombinedRecommendation
from ..repositories.cache_repository import CacheRepository

ComputeFn = Callable[[], Awaitable[List[CombinedRecommendation]]]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    computations: int = 0
    coalesced: int = 0
    fallback_computes: int = 0
    store_errors: int = 0


class RecommendationCache:
    """TTL cache of ranked lists with at most one computation in flight per user.

    Per key the cache moves EMPTY -> COMPUTING -> READY and back to EMPTY when
    the TTL lapses. Callers arriving while a computation is in flight in this
    process await its result; callers in other processes are held off by a
    lock in the cache store and pick up the winner's value. A waiter that
    gives up after ``wait_timeout_seconds`` computes on its own and the event
    is counted in ``stats.fallback_computes``.

    Without a cache store, or when it fails, every request computes.
    """

    KEY_TEMPLATE = "recommendations:user:{user_id}"
    LOCK_PREFIX = "lock:"

    def __init__(self, cache_repository: Optional[CacheRepository] = None,
                 ttl_seconds: int = 3600,
                 lock_ttl_seconds: int = 60,
                 wait_timeout_seconds: float = 10.0,
                 poll_interval_seconds: float = 0.1):
        self.cache_repository = cache_repository
        self.ttl_seconds = ttl_seconds
        self.lock_ttl_seconds = lock_ttl_seconds
        self.wait_timeout_seconds = wait_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.stats = CacheStats()
        self.logger = logging.getLogger(__name__)
        self._inflight: Dict[str, asyncio.Future] = {}

    @classmethod
    def key_for(cls, user_id: int) -> str:
        return cls.KEY_TEMPLATE.format(user_id=user_id)

    def is_computing(self, user_id: int) -> bool:
        return self.key_for(user_id) in self._inflight

    async def get_or_compute(self, user_id: int, compute: ComputeFn,
                             force: bool = False) -> List[CombinedRecommendation]:
        """Serve a fresh cached list or run ``compute`` once for all concurrent callers.

        ``force`` skips a READY entry but still joins a computation already in flight.
        """
        key = self.key_for(user_id)
        while True:
            if not force:
                cached = await self._read(key)
                if cached is not None:
                    self.stats.hits += 1
                    return cached

            inflight = self._inflight.get(key)
            if inflight is None:
                return await self._compute_as_owner(key, compute, force)

            self.stats.coalesced += 1
            done, _ = await asyncio.wait({inflight}, timeout=self.wait_timeout_seconds)
            if not done:
                self.logger.warning(
                    f"Waited {self.wait_timeout_seconds}s on in-flight computation for {key}; computing directly"
                )
                self.stats.fallback_computes += 1
                return await self._compute_and_store(key, compute)
            if not inflight.cancelled():
                return list(inflight.result())
            self.logger.info(f"In-flight computation for {key} was cancelled; retrying")

    async def invalidate(self, user_id: int) -> bool:
        if self.cache_repository is None:
            return False
        try:
            return await self.cache_repository.delete(self.key_for(user_id))
        except Exception as e:
            self.stats.store_errors += 1
            self.logger.warning(f"Failed to invalidate recommendations for user {user_id}: {e}")
            return False

    async def _compute_as_owner(self, key: str, compute: ComputeFn,
                                force: bool) -> List[CombinedRecommendation]:
        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            if not force:
                # A computation may have finished between our read and registration
                cached = await self._read(key)
                if cached is not None:
                    self.stats.hits += 1
                    result = cached
                else:
                    self.stats.misses += 1
                    result = await self._compute_with_lock(key, compute)
            else:
                result = await self._compute_with_lock(key, compute)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Waiters re-raise it through result()
            future.exception()
            raise
        else:
            future.set_result(result)
            return list(result)
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    async def _compute_with_lock(self, key: str, compute: ComputeFn) -> List[CombinedRecommendation]:
        if self.cache_repository is None:
            return await self._compute_and_store(key, compute)

        lock_name = self.LOCK_PREFIX + key
        try:
            token = await self.cache_repository.acquire_lock(lock_name, self.lock_ttl_seconds)
        except Exception as e:
            self.stats.store_errors += 1
            self.logger.warning(f"Cache lock unavailable for {key}: {e}; computing without coordination")
            return await self._compute_and_store(key, compute)

        if token is None:
            cached = await self._wait_for_peer(key)
            if cached is not None:
                self.stats.coalesced += 1
                return cached
            self.logger.warning(
                f"No result from lock holder for {key} after {self.wait_timeout_seconds}s; computing directly"
            )
            self.stats.fallback_computes += 1
            return await self._compute_and_store(key, compute)

        try:
            return await self._compute_and_store(key, compute)
        finally:
            await self._release(lock_name, token)

    async def _compute_and_store(self, key: str, compute: ComputeFn) -> List[CombinedRecommendation]:
        self.stats.computations += 1
        started = time.time()
        result = await compute()
        self.logger.info(f"Computed {len(result)} recommendations for {key} in {time.time() - started:.3f}s")
        await self._write(key, result)
        return result

    async def _wait_for_peer(self, key: str) -> Optional[List[CombinedRecommendation]]:
        deadline = time.monotonic() + self.wait_timeout_seconds
        while time.monotonic() < deadline:
            await asyncio.sleep(self.poll_interval_seconds)
            cached = await self._read(key)
            if cached is not None:
                return cached
        return None

    async def _read(self, key: str) -> Optional[List[CombinedRecommendation]]:
        if self.cache_repository is None:
            return None
        try:
            payload = await self.cache_repository.get(key)
        except Exception as e:
            self.stats.store_errors += 1
            self.logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if payload is None:
            self.logger.debug(f"Cache miss for key: {key}")
            return None
        try:
            return [CombinedRecommendation.from_dict(item) for item in payload]
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Discarding malformed cache entry for {key}: {e}")
            return None

    async def _write(self, key: str, recommendations: List[CombinedRecommendation]) -> bool:
        if self.cache_repository is None:
            return False
        try:
            return await self.cache_repository.set(
                key, [rec.to_dict() for rec in recommendations], self.ttl_seconds
            )
        except Exception as e:
            self.stats.store_errors += 1
            self.logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def _release(self, lock_name: str, token: str):
        try:
            await self.cache_repository.release_lock(lock_name, token)
        except Exception as e:
            self.stats.store_errors += 1
            self.logger.warning(f"Failed to release cache lock {lock_name}: {e}")
