"""
Citizen incident reports: illegal logging, encroachment, poaching and the like.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.models import IncidentCategory, IncidentSeverity, IncidentStatus
from app.core.store import ForestStore, IncidentFilters

router = APIRouter(prefix="/incidents", tags=["Incidents"])


class IncidentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: IncidentCategory
    severity: IncidentSeverity = IncidentSeverity.MEDIUM
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    state: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)
    location_name: Optional[str] = Field(None, max_length=255)
    reporter_name: Optional[str] = Field(None, max_length=255)
    reporter_org: Optional[str] = Field(None, max_length=255)
    reporter_contact: Optional[str] = Field(None, max_length=255)


class IncidentResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: IncidentCategory
    severity: IncidentSeverity
    status: IncidentStatus
    latitude: float
    longitude: float
    state: Optional[str] = None
    district: Optional[str] = None
    location_name: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_org: Optional[str] = None
    reported_at: datetime

    class Config:
        from_attributes = True


@router.get("", response_model=List[IncidentResponse])
def list_incidents(
    state: Optional[str] = Query(None, description="Filter by state, e.g. Assam"),
    category: Optional[IncidentCategory] = Query(None, description="Filter by category"),
    status: Optional[IncidentStatus] = Query(None, description="Filter by review status"),
    limit: int = Query(100, ge=1, le=100, description="Max reports to return"),
    db: Session = Depends(get_db),
):
    """Latest reports first."""
    filters = IncidentFilters(
        state=state,
        category=category.value if category else None,
        status=status.value if status else None,
        limit=limit,
    )
    return ForestStore(db).list_incidents(filters)


@router.post("", response_model=IncidentResponse, status_code=201)
def submit_incident(request: IncidentCreate, db: Session = Depends(get_db)):
    """Record a new report with status reported."""
    return ForestStore(db).create_incident(request.model_dump())
