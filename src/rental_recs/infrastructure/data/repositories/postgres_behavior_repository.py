from typing import List, Optional, Sequence

from asyncpg import Pool

from ....domain.entities.behavior import BehaviorEvent, BehaviorQuery, Booking
from ....domain.entities.property import Property
from ....domain.repositories.behavior_repository import BehaviorRepository
from .postgres_base import PostgresRepository, measure_performance, retry_on_db_error


class PostgresBehaviorRepository(PostgresRepository, BehaviorRepository):
    """asyncpg-backed reads of user_behaviors and bookings"""

    def __init__(self, connection_pool: Pool, connection_timeout: float = 30.0):
        super().__init__(connection_pool, connection_timeout)

    @retry_on_db_error()
    @measure_performance("get_behavior_events")
    async def get_events(self, query: BehaviorQuery) -> List[BehaviorEvent]:
        sql = """
            SELECT user_id, property_id, action, action_at
            FROM user_behaviors
            WHERE user_id = $1
              AND property_id IS NOT NULL
              AND ($2::text[] IS NULL OR action = ANY($2::text[]))
              AND ($3::timestamptz IS NULL OR action_at > $3)
            ORDER BY action_at
            LIMIT $4
        """
        actions = list(query.actions) if query.actions else None
        async with self.get_connection() as conn:
            rows = await conn.fetch(sql, query.user_id, actions, query.since, query.limit)
            return [
                BehaviorEvent(
                    user_id=row['user_id'],
                    property_id=row['property_id'],
                    action=row['action'],
                    action_at=row['action_at']
                )
                for row in rows
            ]

    @retry_on_db_error()
    @measure_performance("get_bookings")
    async def get_bookings(self, user_id: int) -> List[Booking]:
        sql = """
            SELECT b.id, b.user_id, b.property_id, b.status, b.created_at,
                   p.type, p.price_per_night, p.city, p.guests, p.status AS property_status,
                   COALESCE(
                       array_agg(ap.amenity_id) FILTER (WHERE ap.amenity_id IS NOT NULL),
                       '{}'
                   ) AS amenity_ids
            FROM bookings b
            LEFT JOIN properties p ON p.id = b.property_id
            LEFT JOIN amenity_property ap ON ap.property_id = b.property_id
            WHERE b.user_id = $1
            GROUP BY b.id, p.id
            ORDER BY b.created_at, b.id
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(sql, user_id)
            return [
                Booking(
                    id=row['id'],
                    user_id=row['user_id'],
                    property_id=row['property_id'],
                    status=row['status'],
                    created_at=row['created_at'],
                    property=self._row_to_property(row)
                )
                for row in rows
            ]

    @retry_on_db_error()
    @measure_performance("get_booked_property_ids")
    async def get_booked_property_ids(self, user_ids: Sequence[int],
                                      statuses: Sequence[str]) -> List[int]:
        if not user_ids:
            return []

        sql = """
            SELECT property_id FROM bookings
            WHERE user_id = ANY($1::bigint[])
              AND status = ANY($2::text[])
            ORDER BY id
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(sql, list(user_ids), list(statuses))
            return [row['property_id'] for row in rows]

    def _row_to_property(self, row) -> Optional[Property]:
        # Bookings can outlive their property
        if row['type'] is None:
            return None
        return Property.create(
            id=row['property_id'],
            property_type=row['type'],
            price_per_night=float(row['price_per_night'] or 0),
            city=row['city'] or "",
            guests=row['guests'] or 0,
            amenity_ids=row['amenity_ids'],
            status=row['property_status']
        )
