import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from ..entities.recommendation import CombinedRecommendation, PersistedRecommendation
from ..repositories.recommendation_repository import RecommendationRepository


class RecommendationStoreWriter:
    """Persists ranked lists with a validity window, pruning expired rows first"""

    def __init__(self, recommendation_repository: RecommendationRepository, validity_hours: int = 24):
        self.recommendation_repository = recommendation_repository
        self.validity = timedelta(hours=validity_hours)
        self.logger = logging.getLogger(__name__)

    def to_rows(self, user_id: int, ranked: Sequence[CombinedRecommendation],
                now: datetime) -> List[PersistedRecommendation]:
        valid_until = now + self.validity
        return [
            PersistedRecommendation(
                user_id=user_id,
                property_id=rec.property_id,
                score=rec.score,
                reason=rec.primary_reason.value,
                factors={
                    "reasons": [reason.value for reason in rec.reasons],
                    "computed_at": now.isoformat()
                },
                valid_until=valid_until
            )
            for rec in ranked
        ]

    async def persist(self, user_id: int, ranked: Sequence[CombinedRecommendation],
                      now: Optional[datetime] = None) -> bool:
        """Store ``ranked`` for ``user_id``; False when the store could not be written"""
        now = now or datetime.now(timezone.utc)
        rows = self.to_rows(user_id, ranked, now)
        try:
            removed = await self.recommendation_repository.delete_expired(user_id, now)
            stored = await self.recommendation_repository.upsert_many(rows) if rows else 0
        except Exception as e:
            self.logger.error(f"Failed to persist recommendations for user {user_id}: {e}")
            return False

        self.logger.info(
            f"Persisted {stored} recommendations for user {user_id} (pruned {removed} expired)"
        )
        return True
