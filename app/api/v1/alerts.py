"""
Satellite alert and state statistics read endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.models import AlertType, DataSource, Severity
from app.core.store import AlertFilters, ForestStore

router = APIRouter(tags=["Alerts"])


class ForestAlertResponse(BaseModel):
    id: int
    alert_type: AlertType
    severity: Severity
    latitude: float
    longitude: float
    state: Optional[str] = None
    confidence: float
    data_source: DataSource
    detected_at: datetime
    raw_data: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class StateStatResponse(BaseModel):
    state: str
    forest_cover_sqkm: Optional[float] = None
    alerts_count: int
    trend: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


@router.get("/alerts", response_model=List[ForestAlertResponse])
def list_alerts(
    alert_type: Optional[AlertType] = Query(None, description="deforestation or fire"),
    data_source: Optional[DataSource] = Query(None, description="GFW_GLAD or NASA_FIRMS"),
    severity: Optional[Severity] = Query(None, description="high, medium or low"),
    days: int = Query(30, ge=1, le=365, description="Alerts detected in the last N days"),
    limit: int = Query(200, ge=1, le=1000, description="Max alerts to return"),
    db: Session = Depends(get_db),
):
    """Satellite alerts, most recent detection first."""
    filters = AlertFilters(
        alert_type=alert_type.value if alert_type else None,
        data_source=data_source.value if data_source else None,
        severity=severity.value if severity else None,
        days=days,
        limit=limit,
    )
    return ForestStore(db).list_alerts(filters)


@router.get("/stats/states", response_model=List[StateStatResponse])
def list_state_stats(db: Session = Depends(get_db)):
    """Per-state forest cover and recent alert counts, largest cover first."""
    return ForestStore(db).list_state_stats()
