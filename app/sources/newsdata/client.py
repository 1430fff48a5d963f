"""
NewsData.io API client.

Official documentation:
https://newsdata.io/documentation/#latest-news

The `latest` endpoint returns articles from the past 48 hours:
- Query: free-text with OR operators
- Filters: country, language, category
- `size` caps the page (max 50 on paid plans, 10 on the free tier)

Errors come back as HTTP 200 with {"status": "error", "results": {...}},
which BaseAPIClient turns into a FatalError.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import Settings
from app.core.http_client import BaseAPIClient

logger = logging.getLogger(__name__)


class NewsDataClient(BaseAPIClient):
    """
    HTTP client for the NewsData.io latest-news endpoint.

    Inherits retry logic, backoff, and error handling from BaseAPIClient.
    """

    SOURCE_NAME = "newsdata"
    BASE_URL = "https://newsdata.io/api/1"

    DEFAULT_QUERY = "forest OR deforestation OR wildlife OR environment"
    DEFAULT_COUNTRY = "in"
    DEFAULT_LANGUAGE = "en"
    DEFAULT_CATEGORY = "environment"

    def __init__(
        self,
        api_key: Optional[str] = None,
        page_size: int = 25,
        max_concurrency: int = 2,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize NewsData.io client.

        Args:
            api_key: NewsData.io API key
            page_size: Articles requested per call
            max_concurrency: Maximum concurrent requests
            max_retries: Maximum retry attempts for failed requests
            backoff_factor: Exponential backoff multiplier
            transport: Optional httpx transport (tests)
        """
        super().__init__(
            api_key=api_key,
            max_concurrency=max_concurrency,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
            transport=transport,
        )
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "NewsDataClient":
        return cls(
            api_key=settings.newsdata_api_key,
            page_size=settings.news_page_size,
            max_concurrency=settings.max_concurrency,
            max_retries=settings.max_retries,
            backoff_factor=settings.retry_backoff_factor,
            **kwargs,
        )

    async def fetch_latest(
        self,
        query: str = DEFAULT_QUERY,
        country: str = DEFAULT_COUNTRY,
        language: str = DEFAULT_LANGUAGE,
        category: str = DEFAULT_CATEGORY,
    ) -> List[Dict[str, Any]]:
        """
        Fetch the latest articles matching the query.

        Returns:
            Raw article dicts in source order (at most page_size)
        """
        params = {
            "apikey": self.api_key,
            "q": query,
            "country": country,
            "language": language,
            "category": category,
            "size": self.page_size,
        }

        data = await self.get("latest", params=params, resource_id="latest")

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            logger.warning(f"[{self.SOURCE_NAME}] Response has no results list")
            return []

        articles = [a for a in results if isinstance(a, dict)][: self.page_size]
        logger.info(f"[{self.SOURCE_NAME}] Fetched {len(articles)} articles")
        return articles
