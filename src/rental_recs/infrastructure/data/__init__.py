from .config import DataConfig, DatabaseConfig, RedisConfig, DatabaseManager, RedisManager
from .repository_factory import RepositoryFactory, RepositoryManager

__all__ = [
    'DataConfig',
    'DatabaseConfig',
    'RedisConfig',
    'DatabaseManager',
    'RedisManager',
    'RepositoryFactory',
    'RepositoryManager'
]
