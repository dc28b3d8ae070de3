from .user_repository import UserRepository
from .behavior_repository import BehaviorRepository
from .property_repository import PropertyRepository
from .recommendation_repository import RecommendationRepository
from .cache_repository import CacheRepository

__all__ = [
    'UserRepository',
    'BehaviorRepository',
    'PropertyRepository',
    'RecommendationRepository',
    'CacheRepository'
]
