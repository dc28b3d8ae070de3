from .recommendation_refresh_job import RecommendationRefreshJob, JobResult

__all__ = ['RecommendationRefreshJob', 'JobResult']
