"""
Plant-a-tree endpoints.

- POST /trees           submit a planted tree; verification runs in the background
- GET  /trees/verified  verified trees for the map
- GET  /trees/count     number of verified trees
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db, get_session_factory
from app.core.models import TreeStatus
from app.core.rate_limiter import IPRateLimiter, resolve_client_ip
from app.core.store import ForestStore
from app.trees.verifier import run_photo_verification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trees", tags=["Trees"])


class PlantedTreeCreate(BaseModel):
    planter_name: Optional[str] = Field(None, max_length=255)
    planted_date: Optional[date] = None
    photo_url: Optional[str] = Field(None, description="Public URL of the uploaded photo")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class PlantedTreeResponse(BaseModel):
    id: str
    planter_name: Optional[str] = None
    planted_date: Optional[date] = None
    photo_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: TreeStatus
    ai_confidence: Optional[float] = None
    tree_type: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VerifiedTreeResponse(BaseModel):
    id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tree_type: Optional[str] = None
    planted_date: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True


async def verify_submission(
    settings: Settings, tree_id: str, client_ip: Optional[str] = None
) -> None:
    """
    Background verification of a new submission in its own session.

    Failures are logged; the submission stays pending and can be verified
    again through /functions/verify-tree-photo.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        limiter = IPRateLimiter(
            db,
            max_requests=settings.rate_limit_max_requests,
            window=timedelta(minutes=settings.rate_limit_window_minutes),
        )
        result = await run_photo_verification(
            settings, db, tree_id, client_ip=client_ip, rate_limiter=limiter
        )
        logger.info(f"Background verification of tree {tree_id}: {result.get('status')}")
    except Exception as e:
        logger.warning(f"Background verification of tree {tree_id} failed: {e}")
    finally:
        db.close()


@router.post("", response_model=PlantedTreeResponse, status_code=201)
def submit_tree(
    request: PlantedTreeCreate,
    background_tasks: BackgroundTasks,
    x_forwarded_for: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Store a pending submission and queue its photo verification."""
    tree = ForestStore(db).create_tree(request.model_dump())
    logger.info(f"Tree {tree.id} submitted by {tree.planter_name or 'anonymous'}")
    background_tasks.add_task(
        verify_submission, settings, tree.id, resolve_client_ip(x_forwarded_for)
    )
    return tree


@router.get("/verified", response_model=List[VerifiedTreeResponse])
def list_verified_trees(
    limit: int = Query(1000, ge=1, le=5000, description="Max trees to return"),
    db: Session = Depends(get_db),
):
    """Verified trees, newest first."""
    return ForestStore(db).list_verified_trees(limit=limit)


@router.get("/count")
def count_verified_trees(db: Session = Depends(get_db)):
    """Number of verified trees."""
    return {"count": ForestStore(db).count_verified_trees()}
