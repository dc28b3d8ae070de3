import os
import logging
from typing import Optional
from dataclasses import dataclass, field
import asyncpg
import redis.asyncio as redis
from redis.asyncio import Redis

from ...domain.services.recommendation_config import RecommendationConfig

logger = logging.getLogger(__name__)


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DatabaseConfig:
    """Postgres connection settings (DB_* variables)"""
    host: str = "localhost"
    port: int = 5432
    database: str = "rental_marketplace"
    username: str = "postgres"
    password: str = "password"
    min_pool_size: int = 2
    pool_size: int = 10
    command_timeout: int = 30

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        defaults = cls()
        return cls(
            host=os.getenv("DB_HOST", defaults.host),
            port=int(os.getenv("DB_PORT", defaults.port)),
            database=os.getenv("DB_NAME", defaults.database),
            username=os.getenv("DB_USERNAME", defaults.username),
            password=os.getenv("DB_PASSWORD", defaults.password),
            min_pool_size=int(os.getenv("DB_MIN_POOL_SIZE", defaults.min_pool_size)),
            pool_size=int(os.getenv("DB_POOL_SIZE", defaults.pool_size)),
            command_timeout=int(os.getenv("DB_COMMAND_TIMEOUT", defaults.command_timeout))
        )

    @property
    def asyncpg_url(self) -> str:
        return f"postgresql://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class RedisConfig:
    """Redis settings (REDIS_* variables); ``enabled=False`` keeps the cache in process"""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    enabled: bool = True
    key_prefix: str = ""
    max_connections: int = 20
    socket_timeout: int = 5
    socket_connect_timeout: int = 5
    health_check_interval: int = 30

    @classmethod
    def from_env(cls) -> "RedisConfig":
        defaults = cls()
        return cls(
            host=os.getenv("REDIS_HOST", defaults.host),
            port=int(os.getenv("REDIS_PORT", defaults.port)),
            db=int(os.getenv("REDIS_DB", defaults.db)),
            password=os.getenv("REDIS_PASSWORD") or None,
            enabled=env_flag("REDIS_ENABLED", defaults.enabled),
            key_prefix=os.getenv("REDIS_KEY_PREFIX", defaults.key_prefix),
            max_connections=int(os.getenv("REDIS_MAX_CONNECTIONS", defaults.max_connections)),
            socket_timeout=int(os.getenv("REDIS_SOCKET_TIMEOUT", defaults.socket_timeout)),
            socket_connect_timeout=int(
                os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", defaults.socket_connect_timeout)
            ),
            health_check_interval=int(
                os.getenv("REDIS_HEALTH_CHECK_INTERVAL", defaults.health_check_interval)
            )
        )

    @property
    def url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass
class DataConfig:
    """Everything the engine needs from the environment"""
    database: DatabaseConfig = field(default_factory=DatabaseConfig.from_env)
    redis: RedisConfig = field(default_factory=RedisConfig.from_env)
    recommendations: RecommendationConfig = field(default_factory=RecommendationConfig.from_env)


class DatabaseManager:
    """Database connection pool manager"""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> asyncpg.Pool:
        """Initialize database connection pool"""
        try:
            self._pool = await asyncpg.create_pool(
                self.config.asyncpg_url,
                min_size=self.config.min_pool_size,
                max_size=self.config.pool_size,
                command_timeout=self.config.command_timeout
            )

            # Test connection
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")

            logger.info("Database connection pool initialized successfully")
            return self._pool

        except Exception as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise

    async def close(self):
        """Close database connection pool"""
        if self._pool:
            await self._pool.close()
            logger.info("Database connection pool closed")

    @property
    def pool(self) -> Optional[asyncpg.Pool]:
        return self._pool


class RedisManager:
    """Redis connection manager"""

    def __init__(self, config: RedisConfig):
        self.config = config
        self._client: Optional[Redis] = None

    async def initialize(self) -> Redis:
        """Initialize Redis client"""
        try:
            self._client = redis.from_url(
                self.config.url,
                max_connections=self.config.max_connections,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_connect_timeout,
                health_check_interval=self.config.health_check_interval
            )

            # Test connection
            await self._client.ping()

            logger.info("Redis client initialized successfully")
            return self._client

        except Exception as e:
            logger.error(f"Failed to initialize Redis client: {e}")
            raise

    async def close(self):
        """Close Redis connection"""
        if self._client:
            await self._client.aclose()
            logger.info("Redis client closed")

    @property
    def client(self) -> Optional[Redis]:
        return self._client
