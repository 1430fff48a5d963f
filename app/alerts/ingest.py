"""
Satellite alert ingestion job.

Pulls deforestation alerts from Global Forest Watch and active fires from
NASA FIRMS concurrently, stores them idempotently, then refreshes the
per-state alert counts. Either source failing only empties its own list.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from app.core.api_errors import ConfigurationError
from app.core.config import Settings
from app.core.store import ForestStore
from app.sources.firms.client import FIRMSClient
from app.sources.firms.metadata import parse_fire_csv
from app.sources.gfw.client import GFWClient
from app.sources.gfw.metadata import parse_gfw_alerts

logger = logging.getLogger(__name__)

COUNTRY_ISO3 = "IND"


class AlertIngestionJob:
    """
    One run of the satellite alert pipeline.

    Args:
        settings: Application settings
        db: Database session
        gfw_client: GFW Data API client
        firms_client: NASA FIRMS client
        clock: Returns the current naive UTC time
    """

    def __init__(
        self,
        settings: Settings,
        db: Session,
        gfw_client: GFWClient,
        firms_client: FIRMSClient,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.settings = settings
        self.store = ForestStore(db)
        self.gfw_client = gfw_client
        self.firms_client = firms_client
        self.clock = clock

    async def run(self) -> Dict[str, int]:
        """
        Fetch both sources, store the union, refresh state counts.

        Returns:
            {"gfw_count", "fire_count", "total", "inserted"}
        """
        gfw_alerts, fire_alerts = await asyncio.gather(
            self.fetch_gfw_alerts(), self.fetch_fire_alerts()
        )
        alerts = gfw_alerts + fire_alerts

        inserted = 0
        if alerts:
            try:
                inserted = self.store.insert_alerts(alerts)
            except Exception as e:
                logger.error(f"Failed to store {len(alerts)} alerts: {e}")

        try:
            counts = self.store.recompute_state_alert_counts(now=self.clock())
            logger.info(
                f"State alert counts refreshed for {len(counts)} states "
                f"({sum(counts.values())} recent alerts)"
            )
        except Exception as e:
            logger.error(f"State alert aggregation failed: {e}")

        result = {
            "gfw_count": len(gfw_alerts),
            "fire_count": len(fire_alerts),
            "total": len(alerts),
            "inserted": inserted,
        }
        logger.info(f"Alert ingestion complete: {result}")
        return result

    async def fetch_gfw_alerts(self) -> List[Dict[str, Any]]:
        """GFW integrated alerts for the lookback window, or [] on any error."""
        end = self.clock().date()
        start = end - timedelta(days=self.settings.gfw_lookback_days)
        try:
            rows = await self.gfw_client.fetch_alerts(
                start, end, iso=COUNTRY_ISO3, limit=self.settings.alert_row_limit
            )
            return parse_gfw_alerts(rows)
        except Exception as e:
            logger.error(f"GFW fetch failed: {e}")
            return []

    async def fetch_fire_alerts(self) -> List[Dict[str, Any]]:
        """FIRMS VIIRS fires for the configured day range, or [] on any error."""
        try:
            self.settings.require_nasa_firms_api_key()
        except ConfigurationError as e:
            logger.warning(f"Skipping fire alerts: {e}")
            return []

        try:
            text = await self.firms_client.fetch_fire_csv(
                country=COUNTRY_ISO3, day_range=self.settings.firms_day_range
            )
            return parse_fire_csv(text, limit=self.settings.alert_row_limit)
        except Exception as e:
            logger.error(f"FIRMS fetch failed: {e}")
            return []


async def run_alert_ingestion(settings: Settings, db: Session) -> Dict[str, int]:
    """Build the job from settings, run it, and release the HTTP clients."""
    async with GFWClient.from_settings(settings) as gfw_client, \
            FIRMSClient.from_settings(settings) as firms_client:
        return await AlertIngestionJob(settings, db, gfw_client, firms_client).run()
