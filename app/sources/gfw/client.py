"""
GFW Data API client.

Official documentation:
https://data-api.globalforestwatch.org/

Alerts are read with a SQL query against the latest version of the
gfw_integrated_alerts dataset:
    GET /dataset/gfw_integrated_alerts/latest/query?sql=SELECT ...

Successful responses look like {"data": [...], "status": "success"}.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import Settings
from app.core.http_client import BaseAPIClient
from app.sources.gfw.metadata import DATASET, build_alert_query

logger = logging.getLogger(__name__)


class GFWClient(BaseAPIClient):
    """
    HTTP client for the GFW Data API.

    Inherits retry logic, backoff, and error handling from BaseAPIClient.
    """

    SOURCE_NAME = "gfw"
    BASE_URL = "https://data-api.globalforestwatch.org"

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_concurrency: int = 2,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            api_key=api_key,
            max_concurrency=max_concurrency,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
            timeout=60.0,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "GFWClient":
        return cls(
            api_key=settings.gfw_api_key,
            max_concurrency=settings.max_concurrency,
            max_retries=settings.max_retries,
            backoff_factor=settings.retry_backoff_factor,
            **kwargs,
        )

    def _build_headers(self) -> Dict[str, str]:
        headers = super()._build_headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def fetch_alerts(
        self,
        start: date,
        end: date,
        iso: str = "IND",
        limit: int = 200,
    ) -> List[Dict[str, Any]]:
        """
        Fetch integrated alert rows for a country and date range (inclusive).

        Returns:
            Raw result rows (at most limit)
        """
        sql = build_alert_query(start, end, iso=iso, limit=limit)
        data = await self.get(
            f"dataset/{DATASET}/latest/query",
            params={"sql": sql},
            resource_id=f"{DATASET}:{iso}:{start}..{end}",
        )

        rows = data.get("data") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            logger.warning(f"[{self.SOURCE_NAME}] Response has no data list")
            return []

        logger.info(f"[{self.SOURCE_NAME}] Fetched {len(rows)} alert rows for {iso}")
        return rows[:limit]
