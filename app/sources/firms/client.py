"""
NASA FIRMS country CSV client.

Endpoint:
    GET /api/country/csv/{MAP_KEY}/{SOURCE}/{COUNTRY}/{DAY_RANGE}

Returns a CSV body with a header row. The map key is part of the path.
"""

import logging
from typing import Dict, Optional

import httpx

from app.core.api_errors import ConfigurationError
from app.core.config import Settings
from app.core.http_client import BaseAPIClient

logger = logging.getLogger(__name__)


class FIRMSClient(BaseAPIClient):
    """
    HTTP client for the FIRMS active fire CSV feed.

    Inherits retry logic, backoff, and error handling from BaseAPIClient.
    """

    SOURCE_NAME = "nasa_firms"
    BASE_URL = "https://firms.modaps.eosdis.nasa.gov/api"

    DEFAULT_SENSOR = "VIIRS_SNPP"

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
    def from_settings(cls, settings: Settings, **kwargs) -> "FIRMSClient":
        return cls(
            api_key=settings.nasa_firms_api_key,
            max_concurrency=settings.max_concurrency,
            max_retries=settings.max_retries,
            backoff_factor=settings.retry_backoff_factor,
            **kwargs,
        )

    def _build_headers(self) -> Dict[str, str]:
        headers = super()._build_headers()
        headers["Accept"] = "text/csv"
        return headers

    async def fetch_fire_csv(
        self,
        country: str = "IND",
        day_range: int = 1,
        sensor: str = DEFAULT_SENSOR,
    ) -> str:
        """
        Fetch active fire detections for a country as CSV text.

        Args:
            country: ISO3 country code
            day_range: Days of data, counting back from today (1-10)
            sensor: FIRMS source, e.g. VIIRS_SNPP, VIIRS_NOAA20, MODIS_NRT

        Raises:
            ConfigurationError: If no map key is configured
        """
        if not self.has_api_key:
            raise ConfigurationError(
                "NASA FIRMS map key is not configured",
                source=self.SOURCE_NAME,
                missing_config="NASA_FIRMS_API_KEY",
            )

        text = await self.get_text(
            f"country/csv/{self.api_key}/{sensor}/{country}/{day_range}",
            resource_id=f"{sensor}:{country}:{day_range}d",
        )
        logger.info(f"[{self.SOURCE_NAME}] Fetched {len(text)} bytes of {sensor} CSV for {country}")
        return text
