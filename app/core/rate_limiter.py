"""
Per-caller rate limiter for the photo verification endpoint.

Fixed window per IP address, persisted in the rate_limits table:
- first request from an IP creates its record with count 1
- within the window (measured from last_request) the count is incremented
  until it reaches the limit, after which requests are rejected
- once the window has elapsed the count resets to 1 and last_request moves
  to now

The increment/reset is a single conditional UPDATE so two concurrent requests
from the same IP cannot both read the same count and both pass.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import case, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.models import RateLimitRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW = timedelta(minutes=60)


class RateLimitExceeded(Exception):
    """Raised when a caller has used up its requests for the current window."""

    message = "Rate limit exceeded. Try again in an hour."

    def __init__(self, ip_address: str, request_count: int):
        super().__init__(self.message)
        self.ip_address = ip_address
        self.request_count = request_count


def resolve_client_ip(forwarded_for: Optional[str]) -> Optional[str]:
    """First address of an X-Forwarded-For header, or None if absent/blank."""
    if not forwarded_for:
        return None
    first = forwarded_for.split(",")[0].strip()
    if not first or first.lower() == "unknown":
        return None
    return first


class IPRateLimiter:
    """
    Fixed-window request counter keyed by IP address.

    Args:
        db: Database session
        max_requests: Requests allowed per window
        window: Window length, measured from the record's last_request
        clock: Returns the current naive UTC time (tests pass a fake clock)
    """

    def __init__(
        self,
        db: Session,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window: timedelta = DEFAULT_WINDOW,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.max_requests = max_requests
        self.window = window
        self.clock = clock

    def hit(self, ip_address: str) -> int:
        """
        Count one request from ip_address.

        Returns:
            The caller's request count in the current window

        Raises:
            RateLimitExceeded: If the caller is over the limit
        """
        now = self.clock()
        count = self._increment(ip_address, now)
        if count is not None:
            return count

        record = self.db.get(RateLimitRecord, ip_address)
        if record is not None:
            logger.warning(
                f"Rate limit exceeded for {ip_address}: "
                f"{record.request_count} requests since {record.last_request}"
            )
            raise RateLimitExceeded(ip_address, record.request_count)

        try:
            self.db.add(RateLimitRecord(ip_address=ip_address, request_count=1, last_request=now))
            self.db.commit()
            return 1
        except IntegrityError:
            # Another request created the record first; count against it
            self.db.rollback()
            count = self._increment(ip_address, now)
            if count is None:
                raise RateLimitExceeded(ip_address, self.max_requests)
            return count

    def _increment(self, ip_address: str, now: datetime) -> Optional[int]:
        """
        Increment (or reset) the counter in one statement.

        Returns:
            The new count, or None when no row qualified (no record yet, or
            the record is at the limit inside its window)
        """
        expired = RateLimitRecord.last_request <= now - self.window
        stmt = (
            update(RateLimitRecord)
            .where(RateLimitRecord.ip_address == ip_address)
            .where(or_(expired, RateLimitRecord.request_count < self.max_requests))
            .values(
                request_count=case((expired, 1), else_=RateLimitRecord.request_count + 1),
                last_request=case((expired, now), else_=RateLimitRecord.last_request),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            updated = self.db.execute(stmt).rowcount
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if updated != 1:
            return None
        record = self.db.get(RateLimitRecord, ip_address)
        return record.request_count if record is not None else None
