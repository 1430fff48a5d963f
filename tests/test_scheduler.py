"""
Unit tests for app/jobs/scheduler.py

Jobs are registered on a scheduler that is never started, so nothing runs
in the background. All tests are offline.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.jobs import scheduler as scheduler_module
from app.jobs.scheduler import (
    ALERTS_JOB_ID,
    NEWS_JOB_ID,
    get_scheduler,
    register_ingestion_jobs,
    scheduled_alert_ingestion,
    scheduled_news_ingestion,
    stop_scheduler,
)


@pytest.fixture(autouse=True)
def fresh_scheduler():
    stop_scheduler()
    yield
    stop_scheduler()


class TestRegisterIngestionJobs:

    def test_registers_both_jobs(self, make_settings):
        register_ingestion_jobs(make_settings(news_refresh_minutes=60, alerts_refresh_minutes=360))

        jobs = {job.id: job for job in get_scheduler().get_jobs()}
        assert set(jobs) == {NEWS_JOB_ID, ALERTS_JOB_ID}
        assert jobs[NEWS_JOB_ID].trigger.interval.total_seconds() == 3600
        assert jobs[ALERTS_JOB_ID].trigger.interval.total_seconds() == 6 * 3600
        assert jobs[NEWS_JOB_ID].max_instances == 1
        assert jobs[NEWS_JOB_ID].coalesce is True

    def test_stop_resets_singleton(self):
        first = get_scheduler()
        stop_scheduler()
        assert get_scheduler() is not first


class TestScheduledRuns:

    @pytest.mark.asyncio
    async def test_news_run_uses_own_session(self, settings):
        session = MagicMock()
        job = AsyncMock(return_value={"fetched": 1, "inserted": 1})

        with patch.object(scheduler_module, "get_session_factory", return_value=lambda: session), \
                patch.object(scheduler_module, "get_settings", return_value=settings), \
                patch.object(scheduler_module, "run_news_ingestion", job):
            await scheduled_news_ingestion()

        job.assert_awaited_once_with(settings, session)
        session.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, settings):
        session = MagicMock()
        job = AsyncMock(side_effect=RuntimeError("GFW down"))

        with patch.object(scheduler_module, "get_session_factory", return_value=lambda: session), \
                patch.object(scheduler_module, "get_settings", return_value=settings), \
                patch.object(scheduler_module, "run_alert_ingestion", job):
            await scheduled_alert_ingestion()

        session.close.assert_called_once()
