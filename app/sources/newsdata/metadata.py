"""
NewsData.io record parsing.

Maps a raw NewsData.io article onto the news_articles columns. Category,
sentiment and location are supplied by the caller (classifier and geocoder).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.geo.geocoder import GeoMatch
from app.news.classifier import Classification

logger = logging.getLogger(__name__)

# NewsData.io publishes pubDate as "2024-05-01 10:30:00" (UTC)
PUB_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def article_external_id(article: Dict[str, Any]) -> Optional[str]:
    """Stable identity of an article: its article_id, else its link."""
    return article.get("article_id") or article.get("link") or None


def geocoding_text(article: Dict[str, Any]) -> str:
    """Text searched for a state name: title, description and content."""
    return " ".join(
        str(article.get(field) or "") for field in ("title", "description", "content")
    )


def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a pubDate into a naive UTC datetime.

    Accepts NewsData's "YYYY-MM-DD HH:MM:SS" (UTC) and ISO 8601 with or
    without an offset. Returns None when the value is missing or unparseable.
    """
    if not value:
        return None
    value = str(value).strip()

    try:
        return datetime.strptime(value, PUB_DATE_FORMAT)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable pubDate: {value!r}")
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def build_article_record(
    article: Dict[str, Any],
    external_id: str,
    classification: Classification,
    geo: Optional[GeoMatch],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a news_articles row.

    Args:
        article: Raw NewsData.io article
        external_id: Identity from article_external_id()
        classification: Category/sentiment/summary for the article
        geo: Geocoded state, or None when no state was recognised
        now: Ingestion time, used when pubDate is missing or invalid
    """
    return {
        "external_id": external_id,
        "title": article.get("title"),
        "description": article.get("description"),
        "source_name": article.get("source_name") or article.get("source_id"),
        "source_url": article.get("link"),
        "category": classification.category,
        "sentiment": classification.sentiment,
        "state": geo.state if geo else None,
        "latitude": geo.lat if geo else None,
        "longitude": geo.lng if geo else None,
        "published_at": parse_pub_date(article.get("pubDate")) or now or datetime.utcnow(),
        "ai_summary": classification.summary,
    }
