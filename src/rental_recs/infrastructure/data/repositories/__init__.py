from .postgres_user_repository import PostgresUserRepository
from .postgres_behavior_repository import PostgresBehaviorRepository
from .postgres_property_repository import PostgresPropertyRepository
from .postgres_recommendation_repository import PostgresRecommendationRepository
from .redis_cache_repository import RedisCacheRepository
from .memory_cache_repository import InMemoryCacheRepository

__all__ = [
    'PostgresUserRepository',
    'PostgresBehaviorRepository',
    'PostgresPropertyRepository',
    'PostgresRecommendationRepository',
    'RedisCacheRepository',
    'InMemoryCacheRepository'
]
