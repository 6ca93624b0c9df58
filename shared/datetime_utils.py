"""
Date/time helpers — framework-agnostic.

Every timestamp in the auth core is a timezone-aware UTC ``datetime``.
MongoDB hands back naive datetimes unless the client is tz-aware, so values
read from the store pass through ``ensure_utc`` before any comparison.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime, truncated to milliseconds.

    MongoDB stores milliseconds; truncating here keeps in-memory values equal
    to what a later read returns.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch(value: datetime) -> float:
    """Unix epoch seconds, floored to the millisecond.

    Integer arithmetic keeps the result monotonic: t1 <= t2 always gives
    to_epoch(t1) <= to_epoch(t2), which the logout watermark relies on.
    """
    millis = (ensure_utc(value) - _EPOCH) // timedelta(milliseconds=1)
    return millis / 1000
