"""Time utilities (UTC now, deadline math)."""
from __future__ import annotations
import math
from datetime import datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    """Normalize naive datetimes (SQLite round-trips drop tzinfo) to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days remaining until ``deadline``, rounded up (negative once passed)."""
    delta = as_utc(deadline) - as_utc(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)

__all__ = ["utc_now", "as_utc", "days_until"]
