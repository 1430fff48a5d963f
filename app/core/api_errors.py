"""
Error types shared by the upstream clients and the jobs.

Upstream failures (NewsData.io, GFW, NASA FIRMS, OpenAI/OpenRouter) are
split into retryable and fatal so BaseAPIClient knows whether another
attempt can help. The remaining classes are job preconditions the API layer
turns into JSON error bodies.
"""

from typing import Any, Dict, Optional


class APIError(Exception):
    """
    Base exception for upstream and job errors.

    Attributes:
        message: Human-readable error description
        source: Where the error came from (e.g. 'gfw', 'planted_trees')
        status_code: HTTP status code if applicable
        response_data: Raw upstream payload, kept for debugging
        retryable: Whether the request may succeed if sent again
    """

    retryable = False

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.status_code = status_code
        self.response_data = response_data

    def __str__(self) -> str:
        text = f"[{self.source}] {self.message}" if self.source else self.message
        if self.status_code:
            text += f" (HTTP {self.status_code})"
        return text


class RetryableError(APIError):
    """Server errors (5xx), timeouts and dropped connections."""

    retryable = True


class RateLimitError(RetryableError):
    """Upstream answered 429; wait retry_after seconds before the next attempt."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        retry_after: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, source=source, status_code=429, response_data=response_data)
        self.retry_after = retry_after or 60


class FatalError(APIError):
    """
    Permanent failures: bad credentials, bad query, missing resource,
    or an error reported inside a 200 response body.
    """


class ConfigurationError(FatalError):
    """A setting the operation needs (usually an API key) is not configured."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        missing_config: Optional[str] = None,
    ):
        super().__init__(message, source=source)
        self.missing_config = missing_config


class TreeNotFoundError(FatalError):
    """The planted-tree submission being verified does not exist."""

    def __init__(self, tree_id: Optional[str]):
        super().__init__(
            "Tree not found" if tree_id else "Missing tree_id",
            source="planted_trees",
            status_code=404,
        )
        self.tree_id = tree_id


class VerificationUnavailableError(ConfigurationError):
    """Photo verification is requested but the vision model is not configured."""

    def __init__(self):
        super().__init__(
            "Server misconfiguration: AI Verification unavailable",
            source="openrouter",
            missing_config="OPENROUTER_API_KEY",
        )


_FATAL_STATUS_LABELS = {
    400: "Bad request",
    401: "Authentication failed",
    403: "Access forbidden",
    404: "Not found",
}


def classify_http_error(
    status_code: int, response_text: str = "", source: Optional[str] = None
) -> APIError:
    """
    Map an HTTP error status to the APIError subclass the retry loop acts on.

    Args:
        status_code: HTTP status code
        response_text: Response body, truncated into the message
        source: Upstream name
    """
    detail = response_text[:200]
    if status_code == 429:
        return RateLimitError(f"Rate limited: {detail}", source=source)
    if 500 <= status_code < 600:
        return RetryableError(f"Server error: {detail}", source=source, status_code=status_code)
    label = _FATAL_STATUS_LABELS.get(status_code, f"HTTP error {status_code}")
    return FatalError(f"{label}: {detail}", source=source, status_code=status_code)
