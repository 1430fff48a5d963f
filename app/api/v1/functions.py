"""
Job trigger endpoints.

- POST /functions/fetch-forest-news    run the news ingestion job
- POST /functions/fetch-forest-alerts  run the satellite alert job
- POST /functions/verify-tree-photo    verify one planted-tree photo
- POST /refresh                        run both ingestion jobs concurrently

Failures are returned as JSON bodies ({"success": false, "error": ...} or
{"error": ...}) rather than FastAPI's {"detail": ...}, which is the shape
the dashboard reads.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.alerts.ingest import run_alert_ingestion
from app.core.api_errors import APIError
from app.core.config import Settings, get_settings
from app.core.database import get_db, get_session_factory
from app.core.rate_limiter import IPRateLimiter, RateLimitExceeded, resolve_client_ip
from app.news.ingest import run_news_ingestion
from app.trees.verifier import run_photo_verification

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Jobs"])


class VerifyTreeRequest(BaseModel):
    tree_id: Optional[str] = None


@router.post("/functions/fetch-forest-news")
async def fetch_forest_news(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Fetch, classify and store the latest forest news."""
    try:
        result = await run_news_ingestion(settings, db)
    except Exception as e:
        logger.error(f"News ingestion failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    return {"success": True, **result}


@router.post("/functions/fetch-forest-alerts")
async def fetch_forest_alerts(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Fetch GFW deforestation and FIRMS fire alerts and store the new ones."""
    try:
        result = await run_alert_ingestion(settings, db)
    except Exception as e:
        logger.error(f"Alert ingestion failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    return {"success": True, **result}


@router.post("/functions/verify-tree-photo")
async def verify_tree_photo(
    request: Optional[VerifyTreeRequest] = None,
    x_forwarded_for: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Verify a planted-tree photo with the vision model.

    Rate limited per caller IP (first X-Forwarded-For entry). Submissions
    without a photo are rejected without calling the model.
    """
    limiter = IPRateLimiter(
        db,
        max_requests=settings.rate_limit_max_requests,
        window=timedelta(minutes=settings.rate_limit_window_minutes),
    )
    tree_id = request.tree_id if request else None

    try:
        return await run_photo_verification(
            settings,
            db,
            tree_id,
            client_ip=resolve_client_ip(x_forwarded_for),
            rate_limiter=limiter,
        )
    except RateLimitExceeded as e:
        return JSONResponse(status_code=429, content={"error": e.message})
    except APIError as e:
        logger.error(f"Photo verification failed for {tree_id}: {e}")
        return JSONResponse(status_code=500, content={"error": e.message})
    except Exception as e:
        logger.error(f"Photo verification failed for {tree_id}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})


async def _run_in_own_session(
    name: str,
    job: Callable[[Settings, Session], Awaitable[Dict[str, Any]]],
    settings: Settings,
) -> Dict[str, Any]:
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        return {"success": True, **(await job(settings, db))}
    except Exception as e:
        logger.error(f"Refresh of {name} failed: {e}", exc_info=True)
        return {"success": False, "error": str(e)}
    finally:
        db.close()


@router.post("/refresh")
async def refresh_all(settings: Settings = Depends(get_settings)):
    """
    Run news and alert ingestion concurrently.

    Each job has its own session and its own outcome; one failing does not
    affect the other.
    """
    news, alerts = await asyncio.gather(
        _run_in_own_session("news", run_news_ingestion, settings),
        _run_in_own_session("alerts", run_alert_ingestion, settings),
    )
    return {"news": news, "alerts": alerts}
