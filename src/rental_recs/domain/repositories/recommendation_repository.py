from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Sequence

from ..entities.recommendation import PersistedRecommendation, RecommendationAction


class RecommendationRepository(ABC):

    @abstractmethod
    async def delete_expired(self, user_id: int, now: datetime) -> int:
        """Delete rows of ``user_id`` with ``valid_until < now``; returns the count"""
        pass

    @abstractmethod
    async def upsert_many(self, recommendations: Sequence[PersistedRecommendation]) -> int:
        """Insert or update keyed on (user_id, property_id)"""
        pass

    @abstractmethod
    async def get_valid(self, user_id: int, now: datetime,
                        limit: int = 20) -> List[PersistedRecommendation]:
        pass

    @abstractmethod
    async def mark_action(self, user_id: int, property_id: int,
                          action: RecommendationAction) -> bool:
        """Set the action flag; False when no row exists for the pair"""
        pass

    @abstractmethod
    async def get_counts(self, now: datetime) -> Dict[str, Any]:
        """Raw totals for stats: total, active, shown, clicked, booked,
        average_score and booked_reason_counts"""
        pass
