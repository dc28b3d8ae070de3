from typing import List, Optional

import pandas as pd

from ...entities.profile import UserProfile
from ...entities.property import PropertyStats
from ...entities.recommendation import ScoredCandidate, SignalSource
from ...repositories.behavior_repository import BehaviorRepository
from ...repositories.property_repository import PropertyRepository
from ...repositories.user_repository import UserRepository
from ..recommendation_config import RecommendationConfig
from .base import CandidateScorer


def collaborative_score(stats: PropertyStats) -> float:
    """Blend of demand and quality, capped at 1"""
    return min(stats.booking_count / 10 * 0.5 + stats.rating / 5 * 0.5, 1.0)


class CollaborativeScorer(CandidateScorer):
    """Scores properties booked by users who booked the same places"""

    source = SignalSource.COLLABORATIVE

    def __init__(self, user_repository: UserRepository, behavior_repository: BehaviorRepository,
                 property_repository: PropertyRepository,
                 config: Optional[RecommendationConfig] = None):
        super().__init__()
        self.user_repository = user_repository
        self.behavior_repository = behavior_repository
        self.property_repository = property_repository
        self.config = config or RecommendationConfig()

    async def score(self, profile: UserProfile) -> List[ScoredCandidate]:
        if not profile.booked_ids:
            return []

        peers = await self.user_repository.find_peer_user_ids(
            sorted(profile.booked_ids),
            exclude_user_id=profile.user_id,
            statuses=self.config.peer_booking_statuses,
            limit=self.config.max_peer_users
        )
        if not peers:
            return []

        peer_bookings = await self.behavior_repository.get_booked_property_ids(
            peers, statuses=self.config.peer_booking_statuses
        )
        ranked_ids = self.rank_by_frequency(peer_bookings, profile)
        if not ranked_ids:
            return []

        # Inactive properties must not take candidate slots
        stats = await self.property_repository.get_property_stats(ranked_ids, active_only=True)
        top_ids = [property_id for property_id in ranked_ids if property_id in stats]
        candidates = [
            ScoredCandidate(property_id, collaborative_score(stats[property_id]), self.source)
            for property_id in top_ids[:self.config.collaborative_limit]
        ]
        self.logger.debug(
            f"Collaborative: {len(peers)} peers, {len(candidates)} candidates for user {profile.user_id}"
        )
        return candidates

    def rank_by_frequency(self, property_ids: List[int], profile: UserProfile) -> List[int]:
        """Peer-booked unseen properties, most frequent first, id ascending on ties"""
        tally = pd.Series(property_ids, dtype="int64")
        tally = tally[~tally.isin(list(profile.excluded_ids))]
        if tally.empty:
            return []
        counts = tally.value_counts().rename("count").reset_index()
        counts.columns = ["property_id", "count"]
        counts = counts.sort_values(["count", "property_id"], ascending=[False, True], kind="stable")
        return [int(pid) for pid in counts["property_id"]]
