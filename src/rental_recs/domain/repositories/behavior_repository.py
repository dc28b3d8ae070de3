from abc import ABC, abstractmethod
from typing import List, Sequence

from ..entities.behavior import BehaviorEvent, BehaviorQuery, Booking


class BehaviorRepository(ABC):
    """Read access to raw interaction facts: behavior events and bookings"""

    @abstractmethod
    async def get_events(self, query: BehaviorQuery) -> List[BehaviorEvent]:
        """Events matching ``query`` ordered by action time, oldest first"""
        pass

    @abstractmethod
    async def get_bookings(self, user_id: int) -> List[Booking]:
        """Full booking history of one user, any status"""
        pass

    @abstractmethod
    async def get_booked_property_ids(self, user_ids: Sequence[int],
                                      statuses: Sequence[str]) -> List[int]:
        """One property id per matching booking of ``user_ids``"""
        pass
