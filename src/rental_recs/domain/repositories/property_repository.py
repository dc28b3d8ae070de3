from abc import ABC, abstractmethod
from typing import Collection, Dict, List, Sequence

from ..entities.property import Property, PropertyStats


class PropertyRepository(ABC):

    @abstractmethod
    async def get_by_ids(self, property_ids: Sequence[int]) -> List[Property]:
        """Properties with the given ids, any status, ordered by id"""
        pass

    @abstractmethod
    async def get_active(self, exclude_ids: Collection[int] = ()) -> List[Property]:
        """Active properties not in ``exclude_ids``, ordered by id"""
        pass

    @abstractmethod
    async def get_property_stats(self, property_ids: Sequence[int],
                                 active_only: bool = True) -> Dict[int, PropertyStats]:
        pass

    @abstractmethod
    async def get_popular(self, exclude_ids: Collection[int] = (), min_booking_count: int = 5,
                          limit: int = 10) -> List[PropertyStats]:
        """Active properties with more than ``min_booking_count`` bookings.

        Ordered by booking count, then average rating, both descending, then id.
        """
        pass
