"""
Recommendation refresh job.

Wraps the engine's refresh operations for an external scheduler (cron, a
queue worker) and keeps a bounded history of runs. ``run_forever`` serves
deployments without a scheduler.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...domain.services.recommendation_service import RecommendationService, RefreshSummary

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Result of a refresh job execution"""
    job_id: str
    started_at: datetime
    completed_at: datetime
    success: bool
    summary: Optional[RefreshSummary] = None
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


class RecommendationRefreshJob:
    """Scheduler-facing trigger for recomputing recommendations"""

    def __init__(self, service: RecommendationService, history_limit: int = 100):
        self.service = service
        self.history_limit = history_limit
        self.history: List[JobResult] = []
        self.total_runs = 0
        self.successful_runs = 0

        self.is_running = False
        self.stop_event = asyncio.Event()

    async def run_once(self, user_id: Optional[int] = None, force: Optional[bool] = None) -> JobResult:
        """Refresh one user, or every active user when ``user_id`` is None.

        A single-user refresh is forced unless ``force`` says otherwise; a full
        sweep only replaces stale cache entries unless forced.
        """
        job_id = f"user:{user_id}" if user_id is not None else "all"
        started_at = datetime.utcnow()
        logger.info(f"Starting recommendation refresh job {job_id}")

        try:
            if user_id is not None:
                recommendations = await self.service.refresh_user(
                    user_id, force=True if force is None else force
                )
                summary = RefreshSummary(processed=1, refreshed=1)
                logger.info(f"Refreshed {len(recommendations)} recommendations for user {user_id}")
            else:
                summary = await self.service.refresh_all(force=bool(force))

            result = JobResult(
                job_id=job_id,
                started_at=started_at,
                completed_at=datetime.utcnow(),
                success=summary.failed == 0,
                summary=summary
            )
            if summary.failed:
                result.error_message = f"{summary.failed} users failed: {summary.failed_user_ids[:10]}"

        except Exception as e:
            logger.error(f"Refresh job {job_id} failed: {e}")
            result = JobResult(
                job_id=job_id,
                started_at=started_at,
                completed_at=datetime.utcnow(),
                success=False,
                error_message=str(e)
            )

        self._record(result)
        return result

    async def run_forever(self, interval_seconds: float, force: bool = False):
        """Sweep all users every ``interval_seconds`` until ``stop`` is called"""
        if self.is_running:
            logger.warning("Refresh job is already running")
            return

        self.is_running = True
        self.stop_event.clear()
        logger.info(f"Refresh loop started, interval {interval_seconds}s")

        try:
            while self.is_running:
                await self.run_once(force=force)
                try:
                    await asyncio.wait_for(self.stop_event.wait(), timeout=interval_seconds)
                    break  # Stop event was set
                except asyncio.TimeoutError:
                    continue
        finally:
            self.is_running = False
            logger.info("Refresh loop stopped")

    def stop(self):
        self.is_running = False
        self.stop_event.set()

    def get_status(self) -> Dict[str, Any]:
        last_result = self.history[-1] if self.history else None
        return {
            'is_running': self.is_running,
            'total_runs': self.total_runs,
            'successful_runs': self.successful_runs,
            'success_rate': self.successful_runs / self.total_runs if self.total_runs else 0.0,
            'last_run': last_result.started_at.isoformat() if last_result else None,
            'last_success': last_result.success if last_result else None,
            'last_error': last_result.error_message if last_result else None
        }

    def _record(self, result: JobResult):
        self.total_runs += 1
        if result.success:
            self.successful_runs += 1

        self.history.append(result)
        # Keep only the most recent results
        if len(self.history) > self.history_limit:
            self.history = self.history[-self.history_limit:]

        logger.info(
            f"Refresh job {result.job_id} finished in {result.duration_seconds:.2f}s "
            f"(success={result.success})"
        )
