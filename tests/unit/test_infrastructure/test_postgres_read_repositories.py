"""
Unit tests for the read-side Postgres repositories with a mocked asyncpg pool.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from rental_recs.domain.entities import BehaviorQuery, PropertyStats
from rental_recs.domain.exceptions import StoreUnavailableError
from rental_recs.infrastructure.data.repositories import (
    PostgresBehaviorRepository,
    PostgresPropertyRepository,
    PostgresUserRepository
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def property_row(**overrides):
    row = {
        'id': 20, 'type': 'apartment', 'price_per_night': Decimal("110.00"), 'city': 'Paris',
        'guests': 4, 'status': 'active', 'amenity_ids': [1, 2]
    }
    row.update(overrides)
    return row


class RepositoryTestCase:

    repository_class = None

    def setup_method(self):
        self.conn = AsyncMock()
        self.pool = Mock()
        self.pool.acquire = AsyncMock(return_value=self.conn)
        self.pool.release = AsyncMock()
        self.pool.get_size.return_value = 10
        self.pool.get_idle_size.return_value = 7
        self.repository = self.repository_class(self.pool)


class TestPostgresUserRepository(RepositoryTestCase):

    repository_class = PostgresUserRepository

    @pytest.mark.asyncio
    async def test_exists(self):
        self.conn.fetchval.return_value = True

        assert await self.repository.exists(7)
        assert self.conn.fetchval.call_args.args[1] == 7

    @pytest.mark.asyncio
    async def test_active_user_ids_paged(self):
        self.conn.fetch.return_value = [{'id': 3}, {'id': 4}]

        assert await self.repository.get_active_user_ids(limit=2, offset=2) == [3, 4]
        assert self.conn.fetch.call_args.args[1:] == (2, 2)

    @pytest.mark.asyncio
    async def test_peers(self):
        self.conn.fetch.return_value = [{'user_id': 2}, {'user_id': 3}]

        peers = await self.repository.find_peer_user_ids({10}, 1, ("completed",), limit=50)

        assert peers == [2, 3]
        assert self.conn.fetch.call_args.args[1:] == ([10], 1, ["completed"], 50)

    @pytest.mark.asyncio
    async def test_peers_without_properties(self):
        assert await self.repository.find_peer_user_ids([], 1, ("completed",)) == []
        self.pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_health_check(self):
        self.conn.fetchval.return_value = 1

        health = await self.repository.health_check()

        assert health["status"] == "healthy"
        assert health["pool_size"] == 10

    @pytest.mark.asyncio
    async def test_connection_timeout(self):
        async def never():
            await asyncio.sleep(10)

        self.pool.acquire = Mock(side_effect=lambda: never())
        repository = PostgresUserRepository(self.pool, connection_timeout=0.01)

        with pytest.raises(StoreUnavailableError):
            await repository.exists(7)


class TestPostgresBehaviorRepository(RepositoryTestCase):

    repository_class = PostgresBehaviorRepository

    @pytest.mark.asyncio
    async def test_get_events_passes_query_filters(self):
        self.conn.fetch.return_value = [
            {'user_id': 1, 'property_id': 10, 'action': 'view', 'action_at': NOW}
        ]
        query = BehaviorQuery(user_id=1, since=NOW, limit=50)

        [event] = await self.repository.get_events(query)

        assert event.property_id == 10
        assert self.conn.fetch.call_args.args[1:] == (1, ['view', 'bookmark'], NOW, 50)

    @pytest.mark.asyncio
    async def test_get_bookings_attaches_property(self):
        self.conn.fetch.return_value = [
            {'id': 1, 'user_id': 1, 'property_id': 20, 'status': 'completed', 'created_at': NOW,
             'type': 'apartment', 'price_per_night': Decimal("110.00"), 'city': 'Paris', 'guests': 4,
             'property_status': 'active', 'amenity_ids': [1]},
            {'id': 2, 'user_id': 1, 'property_id': 21, 'status': 'completed', 'created_at': NOW,
             'type': None, 'price_per_night': None, 'city': None, 'guests': None,
             'property_status': None, 'amenity_ids': []},
        ]

        bookings = await self.repository.get_bookings(1)

        assert bookings[0].property.price_per_night == 110.0
        assert bookings[0].property.amenity_ids == frozenset({1})
        assert bookings[1].property is None

    @pytest.mark.asyncio
    async def test_booked_property_ids(self):
        self.conn.fetch.return_value = [{'property_id': 20}, {'property_id': 20}, {'property_id': 30}]

        assert await self.repository.get_booked_property_ids([2, 3], ("completed",)) == [20, 20, 30]


class TestPostgresPropertyRepository(RepositoryTestCase):

    repository_class = PostgresPropertyRepository

    @pytest.mark.asyncio
    async def test_get_by_ids(self):
        self.conn.fetch.return_value = [property_row(), property_row(id=21, status='inactive')]

        props = await self.repository.get_by_ids([21, 20])

        assert [prop.id for prop in props] == [20, 21]
        assert props[0].price_per_night == 110.0
        assert not props[1].is_active

    @pytest.mark.asyncio
    async def test_get_by_ids_empty(self):
        assert await self.repository.get_by_ids([]) == []
        self.pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_active_excludes(self):
        self.conn.fetch.return_value = [property_row()]

        await self.repository.get_active(exclude_ids={5, 6})

        assert sorted(self.conn.fetch.call_args.args[1]) == [5, 6]

    @pytest.mark.asyncio
    async def test_property_stats(self):
        self.conn.fetch.return_value = [
            {'id': 20, 'booking_count': 8, 'avg_rating': Decimal("4.5")},
            {'id': 21, 'booking_count': 0, 'avg_rating': None},
        ]

        stats = await self.repository.get_property_stats([20, 21], active_only=False)

        assert stats == {20: PropertyStats(20, 8, 4.5), 21: PropertyStats(21, 0, None)}
        assert self.conn.fetch.call_args.args[2] is False

    @pytest.mark.asyncio
    async def test_popular(self):
        self.conn.fetch.return_value = [{'id': 30, 'booking_count': 20, 'avg_rating': Decimal("4.0")}]

        popular = await self.repository.get_popular(exclude_ids=[1], min_booking_count=5, limit=10)

        assert popular == [PropertyStats(30, 20, 4.0)]
        query = self.conn.fetch.call_args.args[0]
        assert "HAVING COUNT(DISTINCT b.id) > $2" in query
        assert self.conn.fetch.call_args.args[1:] == ([1], 5, 10)
