from .recommendation_config import RecommendationConfig
from .profile_builder import UserProfileBuilder
from .score_combiner import ScoreCombiner
from .recommendation_cache import RecommendationCache, CacheStats
from .recommendation_writer import RecommendationStoreWriter
from .recommendation_service import RecommendationService, RecommendationMetrics, RefreshSummary

__all__ = [
    'RecommendationConfig',
    'UserProfileBuilder',
    'ScoreCombiner',
    'RecommendationCache',
    'CacheStats',
    'RecommendationStoreWriter',
    'RecommendationService',
    'RecommendationMetrics',
    'RefreshSummary'
]
