"""
Unit tests for the recommendation refresh job.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from rental_recs.application.jobs import JobResult, RecommendationRefreshJob
from rental_recs.domain.services.recommendation_service import RefreshSummary


class TestRecommendationRefreshJob:

    def setup_method(self):
        self.service = Mock()
        self.service.refresh_user = AsyncMock(return_value=[Mock(), Mock()])
        self.service.refresh_all = AsyncMock(return_value=RefreshSummary(processed=3, refreshed=3))
        self.job = RecommendationRefreshJob(self.service, history_limit=3)

    @pytest.mark.asyncio
    async def test_single_user_refresh_is_forced(self):
        result = await self.job.run_once(user_id=5)

        self.service.refresh_user.assert_awaited_once_with(5, force=True)
        assert result.job_id == "user:5"
        assert result.success
        assert result.summary.refreshed == 1

    @pytest.mark.asyncio
    async def test_single_user_refresh_can_skip_force(self):
        await self.job.run_once(user_id=5, force=False)

        self.service.refresh_user.assert_awaited_once_with(5, force=False)

    @pytest.mark.asyncio
    async def test_full_sweep_not_forced_by_default(self):
        result = await self.job.run_once()

        self.service.refresh_all.assert_awaited_once_with(force=False)
        assert result.job_id == "all"
        assert result.summary.processed == 3

    @pytest.mark.asyncio
    async def test_failed_users_mark_run_unsuccessful(self):
        self.service.refresh_all.return_value = RefreshSummary(
            processed=3, refreshed=1, failed=2, failed_user_ids=[4, 9]
        )

        result = await self.job.run_once()

        assert not result.success
        assert "[4, 9]" in result.error_message

    @pytest.mark.asyncio
    async def test_exception_is_recorded(self):
        self.service.refresh_user.side_effect = RuntimeError("database down")

        result = await self.job.run_once(user_id=5)

        assert isinstance(result, JobResult)
        assert not result.success
        assert result.error_message == "database down"
        assert self.job.get_status()['last_error'] == "database down"

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        for user_id in range(5):
            await self.job.run_once(user_id=user_id)

        assert [result.job_id for result in self.job.history] == ["user:2", "user:3", "user:4"]
        assert self.job.total_runs == 5
        assert self.job.get_status()['success_rate'] == 1.0

    @pytest.mark.asyncio
    async def test_run_forever_until_stopped(self):
        runs = []

        async def refresh_all(force):
            runs.append(force)
            if len(runs) == 2:
                self.job.stop()
            return RefreshSummary(processed=1, refreshed=1)

        self.service.refresh_all.side_effect = refresh_all

        await asyncio.wait_for(self.job.run_forever(interval_seconds=0.01, force=True), timeout=5)

        assert runs == [True, True]
        assert not self.job.is_running

    def test_status_before_any_run(self):
        status = self.job.get_status()

        assert status['total_runs'] == 0
        assert status['last_run'] is None
        assert status['success_rate'] == 0.0
