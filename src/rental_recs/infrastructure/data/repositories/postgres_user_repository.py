from typing import List, Sequence

from asyncpg import Pool

from ....domain.repositories.user_repository import UserRepository
from .postgres_base import PostgresRepository, measure_performance, retry_on_db_error


class PostgresUserRepository(PostgresRepository, UserRepository):
    """asyncpg-backed user lookups"""

    def __init__(self, connection_pool: Pool, connection_timeout: float = 30.0):
        super().__init__(connection_pool, connection_timeout)

    @retry_on_db_error()
    @measure_performance("user_exists")
    async def exists(self, user_id: int) -> bool:
        async with self.get_connection() as conn:
            return await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM users WHERE id = $1)", user_id
            )

    @retry_on_db_error()
    @measure_performance("get_active_user_ids")
    async def get_active_user_ids(self, limit: int = 100, offset: int = 0) -> List[int]:
        query = """
            SELECT id FROM users
            WHERE status = 'active'
            ORDER BY id
            LIMIT $1 OFFSET $2
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, limit, offset)
            return [row['id'] for row in rows]

    @retry_on_db_error()
    @measure_performance("find_peer_user_ids")
    async def find_peer_user_ids(self, property_ids: Sequence[int], exclude_user_id: int,
                                 statuses: Sequence[str], limit: int = 50) -> List[int]:
        if not property_ids:
            return []

        query = """
            SELECT DISTINCT user_id FROM bookings
            WHERE property_id = ANY($1::bigint[])
              AND user_id <> $2
              AND status = ANY($3::text[])
            ORDER BY user_id
            LIMIT $4
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, list(property_ids), exclude_user_id, list(statuses), limit)
            return [row['user_id'] for row in rows]
