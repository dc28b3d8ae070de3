from typing import List, Optional

from ...entities.profile import UserProfile
from ...entities.recommendation import ScoredCandidate, SignalSource
from ...repositories.property_repository import PropertyRepository
from ..recommendation_config import RecommendationConfig
from .base import CandidateScorer


class PopularityScorer(CandidateScorer):
    """Flat baseline for globally well-booked properties; runs for every user"""

    source = SignalSource.POPULAR

    def __init__(self, property_repository: PropertyRepository,
                 config: Optional[RecommendationConfig] = None):
        super().__init__()
        self.property_repository = property_repository
        self.config = config or RecommendationConfig()

    async def score(self, profile: UserProfile) -> List[ScoredCandidate]:
        excluded = profile.excluded_ids
        popular = await self.property_repository.get_popular(
            exclude_ids=excluded,
            min_booking_count=self.config.popular_min_booking_count,
            limit=self.config.popular_limit
        )
        return [
            ScoredCandidate(stats.property_id, self.config.popular_baseline_score, self.source)
            for stats in popular
            if stats.property_id not in excluded
        ]
