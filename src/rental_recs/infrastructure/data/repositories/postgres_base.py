import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from functools import wraps
from typing import Any, Dict

import asyncpg
from asyncpg import Pool

from ....domain.exceptions import StoreUnavailableError


# Performance monitoring decorator
def measure_performance(operation_name: str):
    """Decorator to measure query performance"""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            start_time = time.time()
            try:
                result = await func(self, *args, **kwargs)
                execution_time = time.time() - start_time

                if execution_time > 1.0:  # Log slow queries
                    self.logger.warning(
                        f"Slow query detected: {operation_name} took {execution_time:.2f}s"
                    )

                return result
            except Exception as e:
                execution_time = time.time() - start_time
                self.logger.error(
                    f"Query failed: {operation_name} took {execution_time:.2f}s, error: {e}"
                )
                raise
        return wrapper
    return decorator


# Retry decorator for database operations
def retry_on_db_error(max_retries: int = 3, delay: float = 0.5):
    """Decorator to retry database operations on transient errors"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except (asyncpg.PostgresConnectionError, asyncpg.InterfaceError,
                        asyncpg.TooManyConnectionsError) as e:
                    if attempt < max_retries - 1:
                        wait_time = delay * (2 ** attempt)  # Exponential backoff
                        await asyncio.sleep(wait_time)
                    else:
                        raise StoreUnavailableError(f"{func.__name__} failed after {max_retries} attempts: {e}") from e
        return wrapper
    return decorator


class PostgresRepository:
    """Shared pool handling for the asyncpg repositories"""

    def __init__(self, connection_pool: Pool, connection_timeout: float = 30.0):
        self.pool = connection_pool
        self.logger = logging.getLogger(self.__class__.__module__)
        self._connection_timeout = connection_timeout

    @asynccontextmanager
    async def get_connection(self):
        """Context manager for database connections with proper error handling"""
        connection = None
        try:
            connection = await asyncio.wait_for(
                self.pool.acquire(),
                timeout=self._connection_timeout
            )
            yield connection
        except asyncio.TimeoutError:
            self.logger.error("Database connection timeout")
            raise StoreUnavailableError("Timed out acquiring a database connection")
        finally:
            if connection:
                await self.pool.release(connection)

    async def health_check(self) -> Dict[str, Any]:
        """Perform health check on database connection"""
        try:
            async with self.get_connection() as conn:
                start_time = time.time()
                await conn.fetchval("SELECT 1")
                response_time = time.time() - start_time

                return {
                    "status": "healthy",
                    "response_time_ms": response_time * 1000,
                    "pool_size": self.pool.get_size(),
                    "pool_free": self.pool.get_idle_size(),
                    "timestamp": datetime.utcnow().isoformat()
                }
        except Exception as e:
            self.logger.error(f"Health check failed: {e}")
            return {
                "status": "unhealthy",
                "error": str(e),
                "timestamp": datetime.utcnow().isoformat()
            }
