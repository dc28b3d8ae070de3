"""
In-memory repositories for exercising the engine without Postgres or Redis.

Every fake counts calls per method in ``calls`` and can be told to fail
(``fail_on``) or to suspend for a while (``latency``) on any method.
"""

import asyncio
import dataclasses
from collections import Counter
from datetime import datetime
from typing import Any, Collection, Dict, List, Optional, Sequence

from rental_recs.domain.entities import (
    BehaviorEvent,
    BehaviorQuery,
    Booking,
    PersistedRecommendation,
    Property,
    PropertyStats,
    RecommendationAction
)
from rental_recs.domain.entities.behavior import COMPLETED
from rental_recs.domain.exceptions import StoreUnavailableError
from rental_recs.domain.repositories import (
    BehaviorRepository,
    PropertyRepository,
    RecommendationRepository,
    UserRepository
)
from rental_recs.infrastructure.data.repositories.memory_cache_repository import InMemoryCacheRepository


class MarketplaceData:
    """Shared snapshot of users, properties, bookings, reviews and events"""

    def __init__(self):
        self.users: Dict[int, str] = {}
        self.properties: Dict[int, Property] = {}
        self.bookings: List[Booking] = []
        self.ratings: Dict[int, List[float]] = {}
        self.events: List[BehaviorEvent] = []
        self._next_booking_id = 1

    def add_user(self, user_id: int, status: str = "active"):
        self.users[user_id] = status

    def add_users(self, *user_ids: int):
        for user_id in user_ids:
            self.add_user(user_id)

    def add_property(self, prop: Property) -> Property:
        self.properties[prop.id] = prop
        return prop

    def add_booking(self, user_id: int, property_id: int, status: str = COMPLETED,
                    created_at: Optional[datetime] = None) -> Booking:
        booking = Booking(
            id=self._next_booking_id,
            user_id=user_id,
            property_id=property_id,
            status=status,
            created_at=created_at
        )
        self._next_booking_id += 1
        self.users.setdefault(user_id, "active")
        self.bookings.append(booking)
        return booking

    def add_review(self, property_id: int, rating: float):
        self.ratings.setdefault(property_id, []).append(rating)

    def add_event(self, event: BehaviorEvent):
        self.users.setdefault(event.user_id, "active")
        self.events.append(event)

    def stats_for(self, property_id: int) -> PropertyStats:
        ratings = self.ratings.get(property_id)
        return PropertyStats(
            property_id=property_id,
            booking_count=sum(1 for booking in self.bookings if booking.property_id == property_id),
            avg_rating=sum(ratings) / len(ratings) if ratings else None
        )


class FakeRepository:
    def __init__(self, latency: float = 0.0):
        self.calls: Counter = Counter()
        self.fail_on: Dict[str, Exception] = {}
        self.latency = latency

    async def _touch(self, method: str):
        self.calls[method] += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        error = self.fail_on.get(method)
        if error is not None:
            raise error


class FakeUserRepository(FakeRepository, UserRepository):

    def __init__(self, data: MarketplaceData, latency: float = 0.0):
        super().__init__(latency)
        self.data = data

    async def exists(self, user_id: int) -> bool:
        await self._touch("exists")
        return user_id in self.data.users

    async def get_active_user_ids(self, limit: int = 100, offset: int = 0) -> List[int]:
        await self._touch("get_active_user_ids")
        active = sorted(uid for uid, status in self.data.users.items() if status == "active")
        return active[offset:offset + limit]

    async def find_peer_user_ids(self, property_ids: Sequence[int], exclude_user_id: int,
                                 statuses: Sequence[str], limit: int = 50) -> List[int]:
        await self._touch("find_peer_user_ids")
        peers = {
            booking.user_id
            for booking in self.data.bookings
            if booking.property_id in property_ids
            and booking.user_id != exclude_user_id
            and booking.status in statuses
        }
        return sorted(peers)[:limit]


class FakeBehaviorRepository(FakeRepository, BehaviorRepository):

    def __init__(self, data: MarketplaceData, latency: float = 0.0):
        super().__init__(latency)
        self.data = data
        self.queries: List[BehaviorQuery] = []

    async def get_events(self, query: BehaviorQuery) -> List[BehaviorEvent]:
        await self._touch("get_events")
        self.queries.append(query)
        events = sorted(
            (event for event in self.data.events if query.matches(event)),
            key=lambda event: event.action_at
        )
        return events[:query.limit] if query.limit is not None else events

    async def get_bookings(self, user_id: int) -> List[Booking]:
        await self._touch("get_bookings")
        return [
            dataclasses.replace(booking, property=self.data.properties.get(booking.property_id))
            for booking in self.data.bookings
            if booking.user_id == user_id
        ]

    async def get_booked_property_ids(self, user_ids: Sequence[int],
                                      statuses: Sequence[str]) -> List[int]:
        await self._touch("get_booked_property_ids")
        return [
            booking.property_id
            for booking in self.data.bookings
            if booking.user_id in user_ids and booking.status in statuses
        ]


class FakePropertyRepository(FakeRepository, PropertyRepository):

    def __init__(self, data: MarketplaceData, latency: float = 0.0):
        super().__init__(latency)
        self.data = data

    async def get_by_ids(self, property_ids: Sequence[int]) -> List[Property]:
        await self._touch("get_by_ids")
        wanted = set(property_ids)
        return [prop for pid, prop in sorted(self.data.properties.items()) if pid in wanted]

    async def get_active(self, exclude_ids: Collection[int] = ()) -> List[Property]:
        await self._touch("get_active")
        return [
            prop for pid, prop in sorted(self.data.properties.items())
            if prop.is_active and pid not in exclude_ids
        ]

    async def get_property_stats(self, property_ids: Sequence[int],
                                 active_only: bool = True) -> Dict[int, PropertyStats]:
        await self._touch("get_property_stats")
        return {
            pid: self.data.stats_for(pid)
            for pid in property_ids
            if pid in self.data.properties and (not active_only or self.data.properties[pid].is_active)
        }

    async def get_popular(self, exclude_ids: Collection[int] = (), min_booking_count: int = 5,
                          limit: int = 10) -> List[PropertyStats]:
        await self._touch("get_popular")
        stats = [
            self.data.stats_for(pid)
            for pid, prop in self.data.properties.items()
            if prop.is_active and pid not in exclude_ids
        ]
        stats = [item for item in stats if item.booking_count > min_booking_count]
        stats.sort(key=lambda item: (
            -item.booking_count,
            item.avg_rating is None,
            -(item.avg_rating or 0.0),
            item.property_id
        ))
        return stats[:limit]


class FakeRecommendationRepository(FakeRepository, RecommendationRepository):

    def __init__(self, latency: float = 0.0):
        super().__init__(latency)
        self.rows: Dict[tuple, PersistedRecommendation] = {}

    async def delete_expired(self, user_id: int, now: datetime) -> int:
        await self._touch("delete_expired")
        expired = [
            key for key, row in self.rows.items()
            if row.user_id == user_id and row.valid_until < now
        ]
        for key in expired:
            del self.rows[key]
        return len(expired)

    async def upsert_many(self, recommendations: Sequence[PersistedRecommendation]) -> int:
        await self._touch("upsert_many")
        for rec in recommendations:
            key = (rec.user_id, rec.property_id)
            existing = self.rows.get(key)
            row = dataclasses.replace(rec)
            if existing is not None:
                # Interaction flags survive an upsert
                row.shown, row.clicked, row.booked = existing.shown, existing.clicked, existing.booked
            self.rows[key] = row
        return len(recommendations)

    async def get_valid(self, user_id: int, now: datetime,
                        limit: int = 20) -> List[PersistedRecommendation]:
        await self._touch("get_valid")
        rows = [row for row in self.rows.values() if row.user_id == user_id and row.is_valid(now)]
        rows.sort(key=lambda row: (-row.score, row.property_id))
        return rows[:limit]

    async def mark_action(self, user_id: int, property_id: int,
                          action: RecommendationAction) -> bool:
        await self._touch("mark_action")
        row = self.rows.get((user_id, property_id))
        if row is None:
            return False
        setattr(row, RecommendationAction(action).value, True)
        return True

    async def get_counts(self, now: datetime) -> Dict[str, Any]:
        await self._touch("get_counts")
        rows = list(self.rows.values())
        reasons: Counter = Counter(row.reason for row in rows if row.booked)
        return {
            "total": len(rows),
            "active": sum(1 for row in rows if row.is_valid(now)),
            "shown": sum(1 for row in rows if row.shown),
            "clicked": sum(1 for row in rows if row.clicked),
            "booked": sum(1 for row in rows if row.booked),
            "average_score": sum(row.score for row in rows) / len(rows) if rows else None,
            "booked_reason_counts": dict(reasons)
        }

    def rows_for(self, user_id: int) -> List[PersistedRecommendation]:
        return sorted(
            (row for row in self.rows.values() if row.user_id == user_id),
            key=lambda row: row.property_id
        )


class CountingCacheRepository(InMemoryCacheRepository):
    """In-memory cache store with call counters and an on/off outage switch"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls: Counter = Counter()
        self.unavailable = False

    def _touch(self, method: str):
        self.calls[method] += 1
        if self.unavailable:
            raise StoreUnavailableError(f"cache store down during {method}")

    async def get(self, key: str):
        self._touch("get")
        return await super().get(key)

    async def set(self, key: str, value, ttl_seconds: int) -> bool:
        self._touch("set")
        return await super().set(key, value, ttl_seconds)

    async def delete(self, key: str) -> bool:
        self._touch("delete")
        return await super().delete(key)

    async def acquire_lock(self, name: str, ttl_seconds: int) -> Optional[str]:
        self._touch("acquire_lock")
        return await super().acquire_lock(name, ttl_seconds)

    async def release_lock(self, name: str, token: str) -> bool:
        self._touch("release_lock")
        return await super().release_lock(name, token)


class FakeStores:
    """Bundle of fakes sharing one MarketplaceData snapshot"""

    def __init__(self, data: Optional[MarketplaceData] = None, latency: float = 0.0,
                 with_cache: bool = True):
        self.data = data or MarketplaceData()
        self.users = FakeUserRepository(self.data, latency)
        self.behavior = FakeBehaviorRepository(self.data, latency)
        self.properties = FakePropertyRepository(self.data, latency)
        self.recommendations = FakeRecommendationRepository()
        self.cache = CountingCacheRepository() if with_cache else None

    def service_kwargs(self) -> Dict[str, Any]:
        return {
            'user_repository': self.users,
            'behavior_repository': self.behavior,
            'property_repository': self.properties,
            'recommendation_repository': self.recommendations,
            'cache_repository': self.cache
        }
