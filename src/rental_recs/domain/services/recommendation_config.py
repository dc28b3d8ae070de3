import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..entities.behavior import COMPLETED
from ..entities.recommendation import SignalSource


def default_weights() -> Dict[SignalSource, float]:
    return {
        SignalSource.COLLABORATIVE: 0.4,
        SignalSource.CONTENT: 0.4,
        SignalSource.POPULAR: 0.2,
    }


@dataclass
class RecommendationConfig:
    """Configuration for the hybrid recommendation engine"""
    # Profile
    behavior_window_months: int = 6
    preferred_amenity_limit: int = 10

    # Collaborative filtering
    max_peer_users: int = 50
    peer_booking_statuses: Tuple[str, ...] = (COMPLETED,)
    collaborative_limit: int = 10

    # Content-based filtering
    content_limit: int = 10
    content_similarity_threshold: float = 0.5
    price_similarity_tolerance: float = 0.3
    guest_capacity_tolerance: int = 2

    # Popularity fallback
    popular_limit: int = 10
    popular_min_booking_count: int = 5
    popular_baseline_score: float = 0.7

    # Combination
    weights: Dict[SignalSource, float] = field(default_factory=default_weights)
    max_recommendations: int = 20

    # Cache and persistence
    cache_ttl_seconds: int = 3600
    cache_lock_ttl_seconds: int = 60
    inflight_wait_timeout_seconds: float = 10.0
    lock_poll_interval_seconds: float = 0.1
    validity_hours: int = 24

    # Execution
    scorer_timeout_seconds: float = 5.0
    refresh_batch_size: int = 100
    refresh_concurrency: int = 4

    def __post_init__(self):
        weights = {SignalSource(source): float(weight) for source, weight in self.weights.items()}
        if any(weight < 0 for weight in weights.values()):
            raise ValueError("Recommendation weights must be non-negative")
        if sum(weights.values()) <= 0:
            raise ValueError("At least one recommendation weight must be positive")
        self.weights = weights
        if self.max_recommendations <= 0:
            raise ValueError("max_recommendations must be positive")

    @classmethod
    def from_env(cls) -> "RecommendationConfig":
        """Load configuration from RECS_* environment variables"""
        defaults = cls()
        return cls(
            behavior_window_months=int(os.getenv("RECS_BEHAVIOR_WINDOW_MONTHS", defaults.behavior_window_months)),
            max_peer_users=int(os.getenv("RECS_MAX_PEER_USERS", defaults.max_peer_users)),
            content_similarity_threshold=float(
                os.getenv("RECS_CONTENT_SIMILARITY_THRESHOLD", defaults.content_similarity_threshold)
            ),
            weights={
                SignalSource.COLLABORATIVE: float(os.getenv(
                    "RECS_WEIGHT_COLLABORATIVE", defaults.weights[SignalSource.COLLABORATIVE])),
                SignalSource.CONTENT: float(os.getenv(
                    "RECS_WEIGHT_CONTENT", defaults.weights[SignalSource.CONTENT])),
                SignalSource.POPULAR: float(os.getenv(
                    "RECS_WEIGHT_POPULAR", defaults.weights[SignalSource.POPULAR])),
            },
            max_recommendations=int(os.getenv("RECS_MAX_RECOMMENDATIONS", defaults.max_recommendations)),
            cache_ttl_seconds=int(os.getenv("RECS_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds)),
            cache_lock_ttl_seconds=int(os.getenv("RECS_CACHE_LOCK_TTL_SECONDS", defaults.cache_lock_ttl_seconds)),
            inflight_wait_timeout_seconds=float(
                os.getenv("RECS_INFLIGHT_WAIT_TIMEOUT_SECONDS", defaults.inflight_wait_timeout_seconds)
            ),
            validity_hours=int(os.getenv("RECS_VALIDITY_HOURS", defaults.validity_hours)),
            scorer_timeout_seconds=float(os.getenv("RECS_SCORER_TIMEOUT_SECONDS", defaults.scorer_timeout_seconds)),
            refresh_batch_size=int(os.getenv("RECS_REFRESH_BATCH_SIZE", defaults.refresh_batch_size)),
            refresh_concurrency=int(os.getenv("RECS_REFRESH_CONCURRENCY", defaults.refresh_concurrency))
        )
