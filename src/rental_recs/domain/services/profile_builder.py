import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..entities.behavior import BOOKMARK, VIEW, BehaviorEvent, BehaviorQuery, Booking
from ..entities.profile import PriceRange, UserProfile
from ..entities.property import Property
from ..repositories.behavior_repository import BehaviorRepository
from ..repositories.property_repository import PropertyRepository
from .recommendation_config import RecommendationConfig


def rank_by_frequency(values: Iterable, limit: Optional[int] = None) -> List:
    """Distinct values, most frequent first; ties keep first-seen order"""
    series = pd.Series(list(values), dtype=object).dropna()
    if series.empty:
        return []
    counts = series.groupby(series, sort=False).size().sort_values(ascending=False, kind="stable")
    ranked = counts.index.tolist()
    return ranked[:limit] if limit is not None else ranked


def calculate_price_range(prices: Sequence[float]) -> PriceRange:
    series = pd.Series(list(prices), dtype=float).dropna()
    if series.empty:
        return PriceRange()
    return PriceRange(min=float(series.min()), max=float(series.max()), avg=float(series.mean()))


def build_profile(user_id: int, events: Sequence[BehaviorEvent], bookings: Sequence[Booking],
                  properties: Dict[int, Property], amenity_limit: int = 10) -> UserProfile:
    """Pure profile construction from already-fetched facts"""
    views = [event for event in events if event.action == VIEW]
    bookmarks = [event for event in events if event.action == BOOKMARK]

    booked_properties = [
        booking.property or properties.get(booking.property_id) for booking in bookings
    ]
    booked_properties = [prop for prop in booked_properties if prop is not None]

    # One entry per view, so amenities of often-viewed properties weigh more
    viewed_amenities = [
        amenity_id
        for event in views
        if event.property_id in properties
        for amenity_id in sorted(properties[event.property_id].amenity_ids)
    ]

    return UserProfile(
        user_id=user_id,
        viewed_ids={event.property_id for event in views},
        bookmarked_ids={event.property_id for event in bookmarks},
        booked_ids={booking.property_id for booking in bookings},
        preferred_types=rank_by_frequency(prop.property_type for prop in booked_properties),
        price_range=calculate_price_range([prop.price_per_night for prop in booked_properties]),
        preferred_amenity_ids=rank_by_frequency(viewed_amenities, limit=amenity_limit),
        preferred_locations=rank_by_frequency(prop.city for prop in booked_properties)
    )


class UserProfileBuilder:
    """Builds a UserProfile from the behavior window and full booking history"""

    def __init__(self, behavior_repository: BehaviorRepository,
                 property_repository: PropertyRepository,
                 config: Optional[RecommendationConfig] = None):
        self.behavior_repository = behavior_repository
        self.property_repository = property_repository
        self.config = config or RecommendationConfig()
        self.logger = logging.getLogger(__name__)

    def window_start(self, now: datetime) -> datetime:
        start = pd.Timestamp(now) - pd.DateOffset(months=self.config.behavior_window_months)
        return start.to_pydatetime()

    async def build(self, user_id: int, now: Optional[datetime] = None) -> UserProfile:
        now = now or datetime.now(timezone.utc)
        query = BehaviorQuery(user_id=user_id, actions=(VIEW, BOOKMARK), since=self.window_start(now))

        events = await self.behavior_repository.get_events(query)
        bookings = await self.behavior_repository.get_bookings(user_id)

        needed = {event.property_id for event in events if event.action == VIEW}
        needed.update(booking.property_id for booking in bookings if booking.property is None)
        properties = {}
        if needed:
            fetched = await self.property_repository.get_by_ids(sorted(needed))
            properties = {prop.id: prop for prop in fetched}

        profile = build_profile(
            user_id, events, bookings, properties, amenity_limit=self.config.preferred_amenity_limit
        )
        self.logger.debug(
            f"Built profile for user {user_id}: {len(profile.viewed_ids)} viewed, "
            f"{len(profile.bookmarked_ids)} bookmarked, {len(profile.booked_ids)} booked"
        )
        return profile
