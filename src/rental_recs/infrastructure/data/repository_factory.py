import logging
from typing import Optional, Union

from ...domain.services.recommendation_service import RecommendationService
from .config import DataConfig, DatabaseManager, RedisManager
from .repositories.memory_cache_repository import InMemoryCacheRepository
from .repositories.postgres_behavior_repository import PostgresBehaviorRepository
from .repositories.postgres_property_repository import PostgresPropertyRepository
from .repositories.postgres_recommendation_repository import PostgresRecommendationRepository
from .repositories.postgres_user_repository import PostgresUserRepository
from .repositories.redis_cache_repository import RedisCacheRepository

logger = logging.getLogger(__name__)

CacheBackend = Union[RedisCacheRepository, InMemoryCacheRepository]


class RepositoryFactory:
    """Factory for creating and managing repository instances"""

    def __init__(self, config: Optional[DataConfig] = None, ensure_schema: bool = True):
        self.config = config or DataConfig()
        self.ensure_schema = ensure_schema
        self.db_manager = DatabaseManager(self.config.database)
        self.redis_manager: Optional[RedisManager] = None

        # Repository instances
        self._user_repository: Optional[PostgresUserRepository] = None
        self._behavior_repository: Optional[PostgresBehaviorRepository] = None
        self._property_repository: Optional[PostgresPropertyRepository] = None
        self._recommendation_repository: Optional[PostgresRecommendationRepository] = None
        self._cache_repository: Optional[CacheBackend] = None
        self._recommendation_service: Optional[RecommendationService] = None

        self._initialized = False

    async def initialize(self):
        """Initialize all data connections and repositories"""
        if self._initialized:
            logger.warning("Repository factory already initialized")
            return

        try:
            await self.db_manager.initialize()
            redis_client = None
            if self.config.redis.enabled:
                redis_client = await self._connect_redis()

            self._create_repositories(redis_client)
            if self.ensure_schema:
                await self._recommendation_repository.ensure_schema()

            self._initialized = True
            logger.info("Repository factory initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize repository factory: {e}")
            await self._close_managers()
            raise

    async def _connect_redis(self):
        """Redis client, or None when Redis cannot be reached and the cache stays in process"""
        self.redis_manager = RedisManager(self.config.redis)
        try:
            return await self.redis_manager.initialize()
        except Exception as e:
            logger.warning(f"Redis unavailable at startup ({e}); falling back to in-process cache")
            try:
                await self.redis_manager.close()
            except Exception as close_error:
                logger.debug(f"Ignoring error while closing Redis client: {close_error}")
            self.redis_manager = None
            return None

    def _create_repositories(self, redis_client=None):
        """Create repository instances"""
        db_pool = self.db_manager.pool
        if db_pool is None:
            raise RuntimeError("Database pool not initialized")

        timeout = self.config.database.command_timeout
        self._user_repository = PostgresUserRepository(db_pool, timeout)
        self._behavior_repository = PostgresBehaviorRepository(db_pool, timeout)
        self._property_repository = PostgresPropertyRepository(db_pool, timeout)
        self._recommendation_repository = PostgresRecommendationRepository(db_pool, timeout)

        if redis_client is not None:
            self._cache_repository = RedisCacheRepository(
                redis_client,
                default_ttl=self.config.recommendations.cache_ttl_seconds,
                key_prefix=self.config.redis.key_prefix
            )
        else:
            logger.info("No Redis client; using in-process recommendation cache")
            self._cache_repository = InMemoryCacheRepository()

        logger.info("All repositories created successfully")

    async def close(self):
        """Close all connections and cleanup"""
        await self._close_managers()
        self._initialized = False
        logger.info("Repository factory closed successfully")

    async def _close_managers(self):
        if self.redis_manager:
            await self.redis_manager.close()
        await self.db_manager.close()

    def get_user_repository(self) -> PostgresUserRepository:
        self._require(self._user_repository, "user")
        return self._user_repository

    def get_behavior_repository(self) -> PostgresBehaviorRepository:
        self._require(self._behavior_repository, "behavior")
        return self._behavior_repository

    def get_property_repository(self) -> PostgresPropertyRepository:
        self._require(self._property_repository, "property")
        return self._property_repository

    def get_recommendation_repository(self) -> PostgresRecommendationRepository:
        self._require(self._recommendation_repository, "recommendation")
        return self._recommendation_repository

    def get_cache_repository(self) -> CacheBackend:
        self._require(self._cache_repository, "cache")
        return self._cache_repository

    def get_recommendation_service(self) -> RecommendationService:
        """Shared engine instance wired to the factory's repositories"""
        if self._recommendation_service is None:
            self._recommendation_service = RecommendationService(
                user_repository=self.get_user_repository(),
                behavior_repository=self.get_behavior_repository(),
                property_repository=self.get_property_repository(),
                recommendation_repository=self.get_recommendation_repository(),
                cache_repository=self.get_cache_repository(),
                config=self.config.recommendations
            )
        return self._recommendation_service

    async def health_check(self) -> dict:
        """Perform health check on all repositories"""
        health_status = {
            "database": False,
            "cache": False,
            "repositories": False,
            "overall": False
        }

        try:
            if self._user_repository:
                db_health = await self._user_repository.health_check()
                health_status["database"] = db_health.get("status") == "healthy"

            if self._cache_repository:
                health_status["cache"] = await self._cache_repository.health_check()

            health_status["repositories"] = all([
                self._user_repository is not None,
                self._behavior_repository is not None,
                self._property_repository is not None,
                self._recommendation_repository is not None,
                self._cache_repository is not None
            ])

            health_status["overall"] = all([
                health_status["database"],
                health_status["cache"],
                health_status["repositories"]
            ])

        except Exception as e:
            logger.error(f"Health check failed: {e}")
            health_status["error"] = str(e)

        return health_status

    def is_initialized(self) -> bool:
        """Check if factory is initialized"""
        return self._initialized

    def _require(self, repository, name: str):
        if not self._initialized or repository is None:
            raise RuntimeError(f"Repository factory not initialized or {name} repository not available")


class RepositoryManager:
    """Context manager for repository lifecycle"""

    def __init__(self, config: Optional[DataConfig] = None, ensure_schema: bool = True):
        self.config = config
        self.ensure_schema = ensure_schema
        self.factory: Optional[RepositoryFactory] = None

    async def __aenter__(self) -> RepositoryFactory:
        """Initialize repositories when entering context"""
        self.factory = RepositoryFactory(self.config, ensure_schema=self.ensure_schema)
        await self.factory.initialize()
        return self.factory

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close repositories when exiting context"""
        if self.factory:
            await self.factory.close()
