"""
Periodic ingestion inside the API process.

Uses APScheduler to run the news and satellite alert jobs on fixed
intervals. Each run opens its own database session.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.alerts.ingest import run_alert_ingestion
from app.core.config import Settings, get_settings
from app.core.database import get_session_factory
from app.news.ingest import run_news_ingestion

logger = logging.getLogger(__name__)

NEWS_JOB_ID = "fetch_forest_news"
ALERTS_JOB_ID = "fetch_forest_alerts"

_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone="UTC")
    return _scheduler


async def _run_with_session(
    name: str,
    job: Callable[[Settings, Session], Awaitable[Dict[str, Any]]],
) -> None:
    """Run one ingestion job with a fresh session; errors are logged, not raised."""
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        result = await job(get_settings(), db)
        logger.info(f"Scheduled {name} finished: {result}")
    except Exception as e:
        logger.error(f"Scheduled {name} failed: {e}", exc_info=True)
    finally:
        db.close()


async def scheduled_news_ingestion() -> None:
    await _run_with_session("news ingestion", run_news_ingestion)


async def scheduled_alert_ingestion() -> None:
    await _run_with_session("alert ingestion", run_alert_ingestion)


def register_ingestion_jobs(settings: Settings) -> None:
    """Add (or replace) the interval jobs for news and alerts."""
    scheduler = get_scheduler()

    scheduler.add_job(
        scheduled_news_ingestion,
        trigger=IntervalTrigger(minutes=settings.news_refresh_minutes),
        id=NEWS_JOB_ID,
        name="Forest news ingestion",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        scheduled_alert_ingestion,
        trigger=IntervalTrigger(minutes=settings.alerts_refresh_minutes),
        id=ALERTS_JOB_ID,
        name="Satellite alert ingestion",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        f"Registered ingestion jobs: news every {settings.news_refresh_minutes}m, "
        f"alerts every {settings.alerts_refresh_minutes}m"
    )


def start_scheduler(settings: Settings) -> None:
    """Register the jobs and start the scheduler if not already running."""
    scheduler = get_scheduler()
    register_ingestion_jobs(settings)
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None

