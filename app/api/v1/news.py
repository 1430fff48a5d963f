"""
Forest news read endpoints.

Feeds the dashboard's news list and its negative-news alert panel.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.models import NewsCategory, Sentiment
from app.core.store import ForestStore, NewsFilters

router = APIRouter(prefix="/news", tags=["News"])


class NewsArticleResponse(BaseModel):
    id: int
    external_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    source_name: Optional[str] = None
    source_url: Optional[str] = None
    category: NewsCategory
    sentiment: Sentiment
    state: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    published_at: datetime
    ai_summary: Optional[str] = None

    class Config:
        from_attributes = True


@router.get("", response_model=List[NewsArticleResponse])
def list_news(
    category: Optional[NewsCategory] = Query(None, description="Filter by category"),
    sentiment: Optional[Sentiment] = Query(None, description="Filter by sentiment"),
    state: Optional[str] = Query(None, description="Filter by state, e.g. Kerala"),
    limit: int = Query(100, ge=1, le=100, description="Max articles to return"),
    db: Session = Depends(get_db),
):
    """Latest articles, newest first."""
    filters = NewsFilters(
        category=category.value if category else None,
        sentiment=sentiment.value if sentiment else None,
        state=state,
        limit=limit,
    )
    return ForestStore(db).list_news(filters)


@router.get("/alerts", response_model=List[NewsArticleResponse])
def list_news_alerts(
    limit: int = Query(50, ge=1, le=100, description="Max articles to return"),
    db: Session = Depends(get_db),
):
    """Negative-sentiment articles, newest first."""
    return ForestStore(db).list_news_alerts(limit=limit)
