from typing import Collection, Dict, List, Sequence

from asyncpg import Pool

from ....domain.entities.property import Property, PropertyStats
from ....domain.repositories.property_repository import PropertyRepository
from .postgres_base import PostgresRepository, measure_performance, retry_on_db_error


_PROPERTY_COLUMNS = """
    SELECT p.id, p.type, p.price_per_night, p.city, p.guests, p.status,
           COALESCE(
               array_agg(ap.amenity_id) FILTER (WHERE ap.amenity_id IS NOT NULL),
               '{}'
           ) AS amenity_ids
    FROM properties p
    LEFT JOIN amenity_property ap ON ap.property_id = p.id
"""


class PostgresPropertyRepository(PostgresRepository, PropertyRepository):
    """asyncpg-backed property catalog and popularity aggregates"""

    def __init__(self, connection_pool: Pool, connection_timeout: float = 30.0):
        super().__init__(connection_pool, connection_timeout)

    @retry_on_db_error()
    @measure_performance("get_properties_by_ids")
    async def get_by_ids(self, property_ids: Sequence[int]) -> List[Property]:
        if not property_ids:
            return []

        query = _PROPERTY_COLUMNS + """
            WHERE p.id = ANY($1::bigint[])
            GROUP BY p.id
            ORDER BY p.id
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, list(property_ids))
            return [self._row_to_property(row) for row in rows]

    @retry_on_db_error()
    @measure_performance("get_active_properties")
    async def get_active(self, exclude_ids: Collection[int] = ()) -> List[Property]:
        query = _PROPERTY_COLUMNS + """
            WHERE p.status = 'active'
              AND NOT (p.id = ANY($1::bigint[]))
            GROUP BY p.id
            ORDER BY p.id
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, list(exclude_ids))
            return [self._row_to_property(row) for row in rows]

    @retry_on_db_error()
    @measure_performance("get_property_stats")
    async def get_property_stats(self, property_ids: Sequence[int],
                                 active_only: bool = True) -> Dict[int, PropertyStats]:
        if not property_ids:
            return {}

        query = """
            SELECT p.id,
                   (SELECT COUNT(*) FROM bookings b WHERE b.property_id = p.id) AS booking_count,
                   (SELECT AVG(r.rating) FROM reviews r WHERE r.property_id = p.id) AS avg_rating
            FROM properties p
            WHERE p.id = ANY($1::bigint[])
              AND (NOT $2::boolean OR p.status = 'active')
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, list(property_ids), active_only)
            return {row['id']: self._row_to_stats(row) for row in rows}

    @retry_on_db_error()
    @measure_performance("get_popular_properties")
    async def get_popular(self, exclude_ids: Collection[int] = (), min_booking_count: int = 5,
                          limit: int = 10) -> List[PropertyStats]:
        query = """
            SELECT p.id,
                   COUNT(DISTINCT b.id) AS booking_count,
                   AVG(r.rating) AS avg_rating
            FROM properties p
            LEFT JOIN bookings b ON b.property_id = p.id
            LEFT JOIN reviews r ON r.property_id = p.id
            WHERE p.status = 'active'
              AND NOT (p.id = ANY($1::bigint[]))
            GROUP BY p.id
            HAVING COUNT(DISTINCT b.id) > $2
            ORDER BY booking_count DESC, avg_rating DESC NULLS LAST, p.id
            LIMIT $3
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, list(exclude_ids), min_booking_count, limit)
            return [self._row_to_stats(row) for row in rows]

    def _row_to_property(self, row) -> Property:
        return Property.create(
            id=row['id'],
            property_type=row['type'],
            price_per_night=float(row['price_per_night'] or 0),
            city=row['city'] or "",
            guests=row['guests'] or 0,
            amenity_ids=row['amenity_ids'],
            status=row['status']
        )

    def _row_to_stats(self, row) -> PropertyStats:
        avg_rating = row['avg_rating']
        return PropertyStats(
            property_id=row['id'],
            booking_count=int(row['booking_count'] or 0),
            avg_rating=float(avg_rating) if avg_rating is not None else None
        )
