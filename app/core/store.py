"""
Store access for the ingestion and verification jobs.

ForestStore wraps a SQLAlchemy session with the queries and writes the jobs
and the API need. Jobs receive it (or the session it wraps) as an
injected dependency, so tests run against in-memory SQLite.
"""
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.models import (
    ForestAlert,
    ForestStat,
    Incident,
    IncidentStatus,
    NewsArticle,
    PlantedTree,
    Sentiment,
    TreeStatus,
    coordinate_key,
)
from app.geo.forest_cover import cover_for
from app.geo.gazetteer import STATE_COORDS, display_name, nearest_state

logger = logging.getLogger(__name__)

ALERT_UNIQUE_COLUMNS = ["data_source", "detected_at", "latitude_key", "longitude_key"]

# Alerts older than this do not count towards a state's alerts_count
STATE_ALERT_WINDOW_DAYS = 30


@dataclass
class NewsFilters:
    """Filters for news queries."""

    category: Optional[str] = None
    sentiment: Optional[str] = None
    state: Optional[str] = None
    limit: int = 100


@dataclass
class AlertFilters:
    """Filters for satellite alert queries."""

    alert_type: Optional[str] = None
    data_source: Optional[str] = None
    severity: Optional[str] = None
    days: int = 30
    limit: int = 200


@dataclass
class IncidentFilters:
    """Filters for citizen incident queries."""

    state: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    limit: int = 100


class ForestStore:
    """Query/insert/update operations over the forest-monitoring tables."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # News
    # ------------------------------------------------------------------

    def news_exists(self, external_id: str) -> bool:
        stmt = select(NewsArticle.id).where(NewsArticle.external_id == external_id).limit(1)
        return self.db.execute(stmt).first() is not None

    def insert_news(self, record: Dict[str, Any]) -> NewsArticle:
        """
        Insert one article and commit.

        The session is rolled back before the error propagates, so the
        caller can keep using it for the next article.
        """
        article = NewsArticle(**record)
        try:
            self.db.add(article)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return article

    def list_news(self, filters: NewsFilters) -> List[NewsArticle]:
        stmt = select(NewsArticle)
        if filters.category:
            stmt = stmt.where(NewsArticle.category == filters.category)
        if filters.sentiment:
            stmt = stmt.where(NewsArticle.sentiment == filters.sentiment)
        if filters.state:
            stmt = stmt.where(NewsArticle.state == filters.state)
        stmt = stmt.order_by(NewsArticle.published_at.desc()).limit(filters.limit)
        return list(self.db.execute(stmt).scalars())

    def list_news_alerts(self, limit: int = 50) -> List[NewsArticle]:
        """Negative-sentiment articles, newest first (dashboard alert feed)."""
        return self.list_news(NewsFilters(sentiment=Sentiment.NEGATIVE.value, limit=limit))

    # ------------------------------------------------------------------
    # Satellite alerts
    # ------------------------------------------------------------------

    def insert_alerts(self, alerts: List[Dict[str, Any]]) -> int:
        """
        Bulk insert alerts, ignoring rows already stored.

        Rows are keyed by source, detection time and coordinates rounded to
        four decimals. Duplicates inside the batch are dropped before the
        insert; duplicates of stored rows are skipped by the unique
        constraint.

        Returns:
            Number of rows actually inserted
        """
        if not alerts:
            return 0

        seen = set()
        batch = []
        for alert in alerts:
            row = dict(alert)
            row["latitude_key"] = coordinate_key(row["latitude"])
            row["longitude_key"] = coordinate_key(row["longitude"])
            key = tuple(row[col] for col in ALERT_UNIQUE_COLUMNS)
            if key in seen:
                continue
            seen.add(key)
            batch.append(row)

        dialect = self.db.get_bind().dialect.name
        try:
            if dialect in ("postgresql", "sqlite"):
                insert = pg_insert if dialect == "postgresql" else sqlite_insert
                stmt = insert(ForestAlert).values(batch).on_conflict_do_nothing(
                    index_elements=ALERT_UNIQUE_COLUMNS
                )
                inserted = self.db.execute(stmt).rowcount
                self.db.commit()
                return inserted
            return self._insert_alerts_individually(batch)
        except Exception:
            self.db.rollback()
            raise

    def _insert_alerts_individually(self, batch: List[Dict[str, Any]]) -> int:
        """Row-by-row fallback for dialects without ON CONFLICT support."""
        inserted = 0
        for row in batch:
            try:
                with self.db.begin_nested():
                    self.db.add(ForestAlert(**row))
                inserted += 1
            except IntegrityError:
                logger.debug(f"Skipping duplicate alert: {row['data_source']} {row['detected_at']}")
        self.db.commit()
        return inserted

    def list_alerts(self, filters: AlertFilters) -> List[ForestAlert]:
        cutoff = datetime.utcnow() - timedelta(days=filters.days)
        stmt = select(ForestAlert).where(ForestAlert.detected_at >= cutoff)
        if filters.alert_type:
            stmt = stmt.where(ForestAlert.alert_type == filters.alert_type)
        if filters.data_source:
            stmt = stmt.where(ForestAlert.data_source == filters.data_source)
        if filters.severity:
            stmt = stmt.where(ForestAlert.severity == filters.severity)
        stmt = stmt.order_by(ForestAlert.detected_at.desc()).limit(filters.limit)
        return list(self.db.execute(stmt).scalars())

    def recompute_state_alert_counts(
        self,
        window_days: int = STATE_ALERT_WINDOW_DAYS,
        now: Optional[datetime] = None,
    ) -> Dict[str, int]:
        """
        Recompute forest_stats.alerts_count for every gazetteer state.

        Alerts without a stored state are attributed to the state with the
        nearest centroid. States with no recent alerts are reset to zero.

        Returns:
            Mapping of state name to its new alert count
        """
        cutoff = (now or datetime.utcnow()) - timedelta(days=window_days)
        rows = self.db.execute(
            select(ForestAlert.latitude, ForestAlert.longitude, ForestAlert.state)
            .where(ForestAlert.detected_at >= cutoff)
        ).all()

        counts: Counter = Counter()
        for lat, lng, state in rows:
            counts[state or nearest_state(lat, lng)] += 1

        result: Dict[str, int] = {}
        try:
            for state, stat in self._state_stat_rows().items():
                stat.alerts_count = counts.get(state, 0)
                result[state] = stat.alerts_count
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result

    def seed_state_stats(self) -> int:
        """
        Make sure every gazetteer state has a forest_stats row with its
        recorded forest cover and trend. Existing figures are kept.

        Returns:
            Number of rows created
        """
        try:
            rows = self._state_stat_rows()
            created = sum(1 for stat in rows.values() if stat in self.db.new)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return created

    def _state_stat_rows(self) -> Dict[str, ForestStat]:
        """forest_stats rows for every gazetteer state, adding missing ones (uncommitted)."""
        stats = {s.state: s for s in self.db.execute(select(ForestStat)).scalars()}
        rows: Dict[str, ForestStat] = {}
        for key in STATE_COORDS:
            state = display_name(key)
            stat = stats.get(state)
            if stat is None:
                stat = ForestStat(state=state, alerts_count=0)
                self.db.add(stat)
            if stat.forest_cover_sqkm is None:
                stat.forest_cover_sqkm, stat.trend = cover_for(key)
            rows[state] = stat
        return rows

    def list_state_stats(self) -> List[ForestStat]:
        stmt = select(ForestStat).order_by(
            ForestStat.forest_cover_sqkm.desc().nullslast(), ForestStat.state
        )
        return list(self.db.execute(stmt).scalars())

    # ------------------------------------------------------------------
    # Planted trees
    # ------------------------------------------------------------------

    def create_tree(self, record: Dict[str, Any]) -> PlantedTree:
        """Insert a pending submission and commit; verification runs separately."""
        tree = PlantedTree(**record, status=TreeStatus.PENDING)
        try:
            self.db.add(tree)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(tree)
        return tree

    def get_tree(self, tree_id: str) -> Optional[PlantedTree]:
        return self.db.get(PlantedTree, tree_id)

    def list_verified_trees(self, limit: int = 1000) -> List[PlantedTree]:
        """Verified submissions for the map, newest first."""
        stmt = (
            select(PlantedTree)
            .where(PlantedTree.status == TreeStatus.VERIFIED)
            .order_by(PlantedTree.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def count_verified_trees(self) -> int:
        stmt = (
            select(func.count())
            .select_from(PlantedTree)
            .where(PlantedTree.status == TreeStatus.VERIFIED)
        )
        return self.db.execute(stmt).scalar_one()

    def update_tree_verification(
        self,
        tree_id: str,
        status: TreeStatus,
        confidence: float,
        tree_type: Optional[str],
    ) -> bool:
        """
        Record the verification outcome in one UPDATE.

        Only pending submissions are updated, so a terminal status is never
        overwritten.

        Returns:
            True if the row transitioned
        """
        stmt = (
            update(PlantedTree)
            .where(PlantedTree.id == tree_id)
            .where(PlantedTree.status == TreeStatus.PENDING)
            .values(
                status=status,
                ai_confidence=confidence,
                tree_type=tree_type or "Tree",
            )
        )
        try:
            transitioned = self.db.execute(stmt).rowcount == 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return transitioned

    # ------------------------------------------------------------------
    # Citizen incidents
    # ------------------------------------------------------------------

    def create_incident(self, record: Dict[str, Any]) -> Incident:
        """Insert a citizen report with status reported and commit."""
        incident = Incident(**record, status=IncidentStatus.REPORTED)
        try:
            self.db.add(incident)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(incident)
        return incident

    def list_incidents(self, filters: IncidentFilters) -> List[Incident]:
        stmt = select(Incident)
        if filters.state:
            stmt = stmt.where(Incident.state == filters.state)
        if filters.category:
            stmt = stmt.where(Incident.category == filters.category)
        if filters.status:
            stmt = stmt.where(Incident.status == filters.status)
        stmt = stmt.order_by(Incident.reported_at.desc()).limit(filters.limit)
        return list(self.db.execute(stmt).scalars())
