"""
Shared async HTTP client for the upstream data sources.

NewsData.io, the GFW Data API and NASA FIRMS all go through BaseAPIClient:
a lazily created httpx.AsyncClient, a semaphore bounding concurrent
requests, and a retry loop driven by the APIError classification.
"""
import asyncio
import logging
import random
from abc import ABC
from typing import Any, Dict, Optional

import httpx

from app.core.api_errors import (
    APIError,
    FatalError,
    RateLimitError,
    RetryableError,
    classify_http_error,
)

logger = logging.getLogger(__name__)


class BaseAPIClient(ABC):
    """
    Base class for the upstream clients.

    Subclasses set SOURCE_NAME and BASE_URL, add their fetch methods on top
    of get() / get_text(), and override _build_headers() or
    _check_api_error() where the upstream needs it.

    Retry policy per request (max_retries attempts in total):
    - 5xx and network errors: exponential backoff with jitter
    - 429: wait for Retry-After (or RateLimitError.retry_after)
    - anything else: raised immediately
    """

    SOURCE_NAME: str = "unknown"
    BASE_URL: str = ""

    DEFAULT_MAX_CONCURRENCY: int = 2
    DEFAULT_TIMEOUT: float = 30.0
    DEFAULT_CONNECT_TIMEOUT: float = 10.0
    DEFAULT_MAX_RETRIES: int = 3
    DEFAULT_BACKOFF_FACTOR: float = 2.0
    MAX_BACKOFF_SECONDS: float = 60.0
    JITTER_FACTOR: float = 0.25

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: Credential for the upstream, if it needs one
            max_concurrency: Semaphore size
            max_retries: Attempts per request, including the first
            backoff_factor: Exponential backoff multiplier
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: httpx transport override (tests pass httpx.MockTransport)
        """
        self.api_key = api_key
        self.max_concurrency = max_concurrency
        self.max_retries = max(1, max_retries)
        self.backoff_factor = backoff_factor
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._transport = transport

        self.semaphore = asyncio.Semaphore(max_concurrency)
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized {self.SOURCE_NAME} client: "
            f"api_key_present={self.has_api_key}, max_retries={self.max_retries}"
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
                limits=httpx.Limits(
                    max_connections=self.max_concurrency * 2,
                    max_keepalive_connections=self.max_concurrency,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug(f"{self.SOURCE_NAME} client closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _backoff_delay(self, attempt: int, base_delay: float = 1.0) -> float:
        """Exponential delay for a 0-indexed attempt, capped, with +/-25% jitter."""
        delay = min(base_delay * (self.backoff_factor ** attempt), self.MAX_BACKOFF_SECONDS)
        jitter = delay * self.JITTER_FACTOR * (2 * random.random() - 1)
        return max(0.1, delay + jitter)

    def _check_api_error(self, data: Any) -> Optional[APIError]:
        """
        Detect an error reported inside a 200 response body.

        Handles the {"status": "error", ...} envelope NewsData.io and the
        GFW Data API use; override for other formats.
        """
        if not isinstance(data, dict) or data.get("status") != "error":
            return None
        detail = data.get("message") or data.get("results") or "Unknown error"
        if isinstance(detail, dict):
            detail = detail.get("message", str(detail))
        return FatalError(str(detail), source=self.SOURCE_NAME, response_data=data)

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": f"ForestWatch/{self.SOURCE_NAME}-client",
        }

    async def _request(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown",
        parse_json: bool = True,
    ) -> Any:
        """
        GET with retries.

        Args:
            url: Absolute URL, or a path joined onto BASE_URL
            params: Query parameters
            resource_id: Short label for log lines (never the API key)
            parse_json: Return parsed JSON when True, the body text otherwise

        Raises:
            APIError: Once the request fails for good
        """
        if not url.startswith("http"):
            url = f"{self.BASE_URL.rstrip('/')}/{url.lstrip('/')}"
        headers = self._build_headers()

        async with self.semaphore:
            client = self._get_client()

            for attempt in range(self.max_retries):
                last_attempt = attempt == self.max_retries - 1
                logger.debug(
                    f"[{self.SOURCE_NAME}] GET {resource_id} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )

                try:
                    response = await client.get(url, params=params, headers=headers)
                    response.raise_for_status()
                except httpx.HTTPStatusError as e:
                    error = classify_http_error(
                        e.response.status_code, e.response.text, self.SOURCE_NAME
                    )
                    if not error.retryable or last_attempt:
                        raise error
                    if isinstance(error, RateLimitError):
                        header = e.response.headers.get("Retry-After", "")
                        wait = int(header) if header.isdigit() else error.retry_after
                        logger.warning(f"[{self.SOURCE_NAME}] Rate limited, waiting {wait}s")
                    else:
                        wait = self._backoff_delay(attempt)
                        logger.warning(f"[{self.SOURCE_NAME}] {error}, retrying in {wait:.1f}s")
                    await asyncio.sleep(wait)
                    continue
                except httpx.RequestError as e:
                    if last_attempt:
                        raise RetryableError(f"Request failed: {e}", source=self.SOURCE_NAME)
                    wait = self._backoff_delay(attempt)
                    logger.warning(
                        f"[{self.SOURCE_NAME}] Request error on {resource_id}: {e}, "
                        f"retrying in {wait:.1f}s"
                    )
                    await asyncio.sleep(wait)
                    continue

                if not parse_json:
                    return response.text

                try:
                    data = response.json()
                except ValueError as e:
                    raise FatalError(f"Invalid JSON response: {e}", source=self.SOURCE_NAME)

                api_error = self._check_api_error(data)
                if api_error is not None:
                    raise api_error

                logger.debug(f"[{self.SOURCE_NAME}] Fetched {resource_id}")
                return data

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown",
    ) -> Any:
        """GET and return parsed JSON."""
        return await self._request(url, params=params, resource_id=resource_id)

    async def get_text(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown",
    ) -> str:
        """GET and return the body as text (CSV feeds)."""
        return await self._request(url, params=params, resource_id=resource_id, parse_json=False)
