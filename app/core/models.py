"""
SQLAlchemy models for the forest-monitoring store.

The dashboard reads these tables directly; the ingestion and verification
jobs are the only writers for news, alerts and tree verification results.
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Text,
    Float,
    JSON,
    Enum,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class NewsCategory(str, enum.Enum):
    DEFORESTATION = "deforestation"
    FIRE = "fire"
    WILDLIFE = "wildlife"
    POLICY = "policy"
    CONSERVATION = "conservation"


class Sentiment(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class AlertType(str, enum.Enum):
    DEFORESTATION = "deforestation"
    FIRE = "fire"


class Severity(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DataSource(str, enum.Enum):
    GFW_GLAD = "GFW_GLAD"
    NASA_FIRMS = "NASA_FIRMS"


class IncidentCategory(str, enum.Enum):
    ILLEGAL_LOGGING = "illegal_logging"
    ENCROACHMENT = "encroachment"
    POACHING = "poaching"
    MINING = "mining"
    POLLUTION = "pollution"
    LAND_GRAB = "land_grab"
    OTHER = "other"


class IncidentSeverity(str, enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IncidentStatus(str, enum.Enum):
    """Review lifecycle of a citizen report; new reports start as reported."""
    REPORTED = "reported"
    VERIFIED = "verified"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class TreeStatus(str, enum.Enum):
    """Verification lifecycle: pending -> verified | rejected (terminal)."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


def _enum_type(enum_cls, length: int) -> Enum:
    """String-backed enum column storing the lower-case values the dashboard filters on."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


def coordinate_key(value: float) -> int:
    """Coordinate rounded to 4 decimals, as integer ten-thousandths of a degree."""
    return int(round(float(value) * 10_000))


class NewsArticle(Base):
    """
    Forest/environment news article.

    Append-only: one row per external_id, never updated after insert.
    """
    __tablename__ = "news_articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(512), nullable=False, unique=True)

    title = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    source_name = Column(String(255), nullable=True)
    source_url = Column(Text, nullable=True)

    category = Column(
        _enum_type(NewsCategory, 20),
        nullable=False,
        default=NewsCategory.CONSERVATION,
        index=True,
    )
    sentiment = Column(
        _enum_type(Sentiment, 10),
        nullable=False,
        default=Sentiment.NEUTRAL,
        index=True,
    )

    state = Column(String(100), nullable=True, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    published_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    ai_summary = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_news_published", "published_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<NewsArticle(id={self.id}, external_id={self.external_id}, "
            f"category={self.category}, state={self.state})>"
        )


class ForestAlert(Base):
    """
    Satellite-derived deforestation or fire alert.

    Append-only. The unique constraint on source, detection time and rounded
    coordinates makes re-running ingestion over an overlapping window a no-op
    for alerts already stored.
    """
    __tablename__ = "forest_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(
        _enum_type(AlertType, 20),
        nullable=False,
        index=True,
    )
    severity = Column(
        _enum_type(Severity, 10),
        nullable=False,
    )
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    state = Column(String(100), nullable=True)
    confidence = Column(Float, nullable=False)
    data_source = Column(
        _enum_type(DataSource, 20),
        nullable=False,
    )
    detected_at = Column(DateTime, nullable=False, index=True)
    raw_data = Column(JSON, nullable=True)

    # Dedupe key components
    latitude_key = Column(Integer, nullable=False)
    longitude_key = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint(
            "data_source", "detected_at", "latitude_key", "longitude_key",
            name="uq_forest_alert_source_time_coords",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ForestAlert(id={self.id}, type={self.alert_type}, "
            f"source={self.data_source}, detected_at={self.detected_at})>"
        )


class ForestStat(Base):
    """Per-state forest statistics shown on the dashboard."""
    __tablename__ = "forest_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    state = Column(String(100), nullable=False, unique=True)
    forest_cover_sqkm = Column(Float, nullable=True)
    alerts_count = Column(Integer, nullable=False, default=0)
    trend = Column(String(20), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class PlantedTree(Base):
    """
    Citizen tree-planting submission.

    Created as pending by the submission form; the verification job moves it
    to verified or rejected exactly once.
    """
    __tablename__ = "planted_trees"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    planter_name = Column(String(255), nullable=True)
    planted_date = Column(Date, nullable=True)
    photo_url = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(
        _enum_type(TreeStatus, 20),
        nullable=False,
        default=TreeStatus.PENDING,
        index=True,
    )
    ai_confidence = Column(Float, nullable=True)
    tree_type = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<PlantedTree(id={self.id}, status={self.status})>"


class RateLimitRecord(Base):
    """Request counter per caller IP for the photo verification endpoint."""
    __tablename__ = "rate_limits"

    ip_address = Column(String(64), primary_key=True)
    request_count = Column(Integer, nullable=False, default=1)
    last_request = Column(DateTime, nullable=False, default=datetime.utcnow)


class Incident(Base):
    """
    Citizen report of illegal logging, encroachment, poaching and similar.

    Submitted through the report form with status reported; moderators move
    it through the review lifecycle outside this service.
    """
    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(
        _enum_type(IncidentCategory, 30),
        nullable=False,
        index=True,
    )
    severity = Column(
        _enum_type(IncidentSeverity, 10),
        nullable=False,
        default=IncidentSeverity.MEDIUM,
    )
    status = Column(
        _enum_type(IncidentStatus, 20),
        nullable=False,
        default=IncidentStatus.REPORTED,
        index=True,
    )

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    state = Column(String(100), nullable=True, index=True)
    district = Column(String(100), nullable=True)
    location_name = Column(String(255), nullable=True)

    reporter_name = Column(String(255), nullable=True)
    reporter_org = Column(String(255), nullable=True)
    reporter_contact = Column(String(255), nullable=True)

    reported_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Incident(id={self.id}, category={self.category}, status={self.status})>"
