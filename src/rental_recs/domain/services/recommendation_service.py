import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..entities.profile import UserProfile
from ..entities.recommendation import (
    CombinedRecommendation,
    PersistedRecommendation,
    RecommendationAction,
    RecommendationStats,
    ScoredCandidate,
    SignalSource
)
from ..exceptions import PropertyNotFoundError, RecommendationNotFoundError, UserNotFoundError
from ..repositories.behavior_repository import BehaviorRepository
from ..repositories.cache_repository import CacheRepository
from ..repositories.property_repository import PropertyRepository
from ..repositories.recommendation_repository import RecommendationRepository
from ..repositories.user_repository import UserRepository
from .profile_builder import UserProfileBuilder
from .recommendation_cache import RecommendationCache
from .recommendation_config import RecommendationConfig
from .recommendation_writer import RecommendationStoreWriter
from .score_combiner import ScoreCombiner
from .scoring import CollaborativeScorer, ContentScorer, PopularityScorer
from .scoring.content import average_similarity, rank_similar


@dataclass
class RecommendationMetrics:
    """Counters for recommendation traffic since startup"""
    total_requests: int = 0
    computations: int = 0
    empty_results: int = 0
    persistence_failures: int = 0
    fallback_responses: int = 0
    error_count: int = 0
    source_usage: Dict[str, int] = field(default_factory=dict)
    average_compute_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class RefreshSummary:
    processed: int = 0
    refreshed: int = 0
    skipped: int = 0
    failed: int = 0
    failed_user_ids: List[int] = field(default_factory=list)


class RecommendationService:
    """Hybrid recommendation engine.

    ``get_recommendations`` is the cache-backed entry point. A cache miss runs
    the pipeline: profile, then collaborative, content and popularity scorers
    concurrently, the weighted combiner, and finally the store writer. Only
    an unknown user is reported as an error; every other failure degrades.
    """

    def __init__(self,
                 user_repository: UserRepository,
                 behavior_repository: BehaviorRepository,
                 property_repository: PropertyRepository,
                 recommendation_repository: RecommendationRepository,
                 cache_repository: Optional[CacheRepository] = None,
                 config: Optional[RecommendationConfig] = None):
        self.user_repository = user_repository
        self.behavior_repository = behavior_repository
        self.property_repository = property_repository
        self.recommendation_repository = recommendation_repository
        self.config = config or RecommendationConfig()
        self.logger = logging.getLogger(__name__)

        self.profile_builder = UserProfileBuilder(behavior_repository, property_repository, self.config)
        self.popularity_scorer = PopularityScorer(property_repository, self.config)
        self.scorers = [
            CollaborativeScorer(user_repository, behavior_repository, property_repository, self.config),
            ContentScorer(property_repository, self.config),
            self.popularity_scorer
        ]
        self.combiner = ScoreCombiner(self.config.weights, limit=self.config.max_recommendations)
        self.cache = RecommendationCache(
            cache_repository,
            ttl_seconds=self.config.cache_ttl_seconds,
            lock_ttl_seconds=self.config.cache_lock_ttl_seconds,
            wait_timeout_seconds=self.config.inflight_wait_timeout_seconds,
            poll_interval_seconds=self.config.lock_poll_interval_seconds
        )
        self.writer = RecommendationStoreWriter(recommendation_repository, self.config.validity_hours)
        self.metrics = RecommendationMetrics()

    async def get_recommendations(self, user_id: int) -> List[CombinedRecommendation]:
        """Ranked recommendations for a user, at most ``max_recommendations`` long.

        Raises:
            UserNotFoundError: the user does not exist.
        """
        self.metrics.total_requests += 1
        return await self._get(user_id, force=False)

    async def refresh_user(self, user_id: int, force: bool = True) -> List[CombinedRecommendation]:
        """Recompute one user's list, bypassing a fresh cache entry only when forced"""
        return await self._get(user_id, force=force)

    async def refresh_all(self, force: bool = False, batch_size: Optional[int] = None) -> RefreshSummary:
        """Walk every active user in batches and refresh their recommendations"""
        batch_size = batch_size or self.config.refresh_batch_size
        semaphore = asyncio.Semaphore(max(self.config.refresh_concurrency, 1))
        summary = RefreshSummary()

        async def refresh(user_id: int):
            async with semaphore:
                try:
                    await self.refresh_user(user_id, force=force)
                    summary.refreshed += 1
                except UserNotFoundError:
                    summary.skipped += 1
                except Exception as e:
                    summary.failed += 1
                    summary.failed_user_ids.append(user_id)
                    self.logger.error(f"Refresh failed for user {user_id}: {e}")

        offset = 0
        while True:
            user_ids = await self.user_repository.get_active_user_ids(limit=batch_size, offset=offset)
            if not user_ids:
                break
            await asyncio.gather(*(refresh(user_id) for user_id in user_ids))
            summary.processed += len(user_ids)
            offset += len(user_ids)
            if len(user_ids) < batch_size:
                break

        self.logger.info(
            f"Refreshed recommendations: {summary.refreshed} refreshed, {summary.skipped} skipped, "
            f"{summary.failed} failed of {summary.processed} users"
        )
        return summary

    async def invalidate(self, user_id: int) -> bool:
        return await self.cache.invalidate(user_id)

    async def get_stored_recommendations(self, user_id: int,
                                         limit: Optional[int] = None) -> List[PersistedRecommendation]:
        now = datetime.now(timezone.utc)
        rows = await self.recommendation_repository.get_valid(
            user_id, now, limit=limit or self.config.max_recommendations
        )
        return sorted(rows, key=lambda row: (-row.score, row.property_id))

    async def get_similar_properties(self, property_id: int, limit: int = 5) -> List[ScoredCandidate]:
        """Active properties most similar to one property by content features"""
        found = await self.property_repository.get_by_ids([property_id])
        base = next((prop for prop in found if prop.id == property_id), None)
        if base is None:
            raise PropertyNotFoundError(property_id)

        candidates = await self.property_repository.get_active(exclude_ids={property_id})
        candidates = [prop for prop in candidates if prop.id != property_id]
        scores = average_similarity(
            candidates,
            [base],
            price_tolerance=self.config.price_similarity_tolerance,
            capacity_tolerance=self.config.guest_capacity_tolerance
        )
        ranked = rank_similar(candidates, scores, threshold=0.0, limit=limit)
        return [ScoredCandidate(pid, score, SignalSource.CONTENT) for pid, score in ranked]

    async def track_interaction(self, user_id: int, property_id: int, action: str) -> None:
        """Flag a persisted recommendation as shown, clicked or booked"""
        action = RecommendationAction(action)
        updated = await self.recommendation_repository.mark_action(user_id, property_id, action)
        if not updated:
            raise RecommendationNotFoundError(user_id, property_id)
        self.logger.info(f"Recommendation of property {property_id} for user {user_id} marked {action.value}")

    async def get_recommendation_stats(self) -> RecommendationStats:
        counts = await self.recommendation_repository.get_counts(datetime.now(timezone.utc))
        return RecommendationStats.from_counts(
            total=counts.get("total", 0),
            active=counts.get("active", 0),
            shown=counts.get("shown", 0),
            clicked=counts.get("clicked", 0),
            booked=counts.get("booked", 0),
            average_score=counts.get("average_score"),
            booked_reason_counts=counts.get("booked_reason_counts", {})
        )

    # === PIPELINE ===

    async def _get(self, user_id: int, force: bool) -> List[CombinedRecommendation]:
        try:
            return await self.cache.get_or_compute(user_id, lambda: self._compute(user_id), force=force)
        except UserNotFoundError:
            raise
        except Exception as e:
            self.logger.error(f"Recommendation generation failed for user {user_id}: {e}")
            self.metrics.error_count += 1
            return await self._get_fallback_recommendations(user_id)

    async def _compute(self, user_id: int) -> List[CombinedRecommendation]:
        start_time = time.time()
        if not await self.user_repository.exists(user_id):
            raise UserNotFoundError(user_id)

        profile = await self.profile_builder.build(user_id)
        results = await self._score(profile)
        recommendations = self.combiner.combine(results, exclude_ids=profile.excluded_ids)

        if not await self.writer.persist(user_id, recommendations):
            self.metrics.persistence_failures += 1

        self._record_computation(recommendations, (time.time() - start_time) * 1000)
        return recommendations

    async def _score(self, profile: UserProfile) -> Dict[SignalSource, List[ScoredCandidate]]:
        timeout = self.config.scorer_timeout_seconds
        lists = await asyncio.gather(
            *(scorer.score_safely(profile, timeout=timeout) for scorer in self.scorers)
        )
        results = {scorer.source: candidates for scorer, candidates in zip(self.scorers, lists)}
        self.logger.debug(
            f"Signals for user {profile.user_id}: "
            + ", ".join(f"{source.value}={len(items)}" for source, items in results.items())
        )
        return results

    async def _get_fallback_recommendations(self, user_id: int) -> List[CombinedRecommendation]:
        """Popularity-only list for a failed pipeline; neither cached nor persisted.

        Seen properties still have to be excluded, so an unreadable profile
        means no recommendations at all.
        """
        self.metrics.fallback_responses += 1
        try:
            profile = await self.profile_builder.build(user_id)
        except Exception as e:
            self.logger.warning(f"Profile for user {user_id} unavailable: {e}; returning no recommendations")
            return []

        popular = await self.popularity_scorer.score_safely(
            profile, timeout=self.config.scorer_timeout_seconds
        )
        return self.combiner.combine({SignalSource.POPULAR: popular}, exclude_ids=profile.excluded_ids)

    def _record_computation(self, recommendations: List[CombinedRecommendation], elapsed_ms: float):
        metrics = self.metrics
        metrics.computations += 1
        if not recommendations:
            metrics.empty_results += 1
        for rec in recommendations:
            for reason in rec.reasons:
                metrics.source_usage[reason.value] = metrics.source_usage.get(reason.value, 0) + 1
        # Running average over all computations
        metrics.average_compute_time_ms += (elapsed_ms - metrics.average_compute_time_ms) / metrics.computations
