from dataclasses import dataclass, field
from typing import List, Set


@dataclass(frozen=True)
class PriceRange:
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0


@dataclass
class UserProfile:
    """Preference profile derived from one user's behavior and bookings.

    Built fresh for every computation and never persisted.
    """
    user_id: int
    viewed_ids: Set[int] = field(default_factory=set)
    bookmarked_ids: Set[int] = field(default_factory=set)
    booked_ids: Set[int] = field(default_factory=set)
    preferred_types: List[str] = field(default_factory=list)
    price_range: PriceRange = field(default_factory=PriceRange)
    preferred_amenity_ids: List[int] = field(default_factory=list)
    preferred_locations: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, user_id: int) -> "UserProfile":
        return cls(user_id=user_id)

    @property
    def excluded_ids(self) -> Set[int]:
        """Properties that must never be recommended back to the user"""
        return self.viewed_ids | self.booked_ids

    @property
    def reference_ids(self) -> Set[int]:
        return self.booked_ids | self.bookmarked_ids

    @property
    def is_cold_start(self) -> bool:
        return not (self.viewed_ids or self.bookmarked_ids or self.booked_ids)
