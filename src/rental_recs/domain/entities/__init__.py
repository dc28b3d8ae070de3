from .property import Property, PropertyStats, ACTIVE_STATUS
from .behavior import BehaviorEvent, BehaviorQuery, Booking, VIEW, BOOKMARK, COMPLETED
from .profile import PriceRange, UserProfile
from .recommendation import (
    SignalSource,
    RecommendationAction,
    ScoredCandidate,
    CombinedRecommendation,
    PersistedRecommendation,
    RecommendationStats
)

__all__ = [
    'Property',
    'PropertyStats',
    'ACTIVE_STATUS',
    'BehaviorEvent',
    'BehaviorQuery',
    'Booking',
    'VIEW',
    'BOOKMARK',
    'COMPLETED',
    'PriceRange',
    'UserProfile',
    'SignalSource',
    'RecommendationAction',
    'ScoredCandidate',
    'CombinedRecommendation',
    'PersistedRecommendation',
    'RecommendationStats'
]
