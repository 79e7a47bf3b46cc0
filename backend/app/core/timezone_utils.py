"""
Timezone utilities for the CombatBooking platform.

Every timestamp the booking core writes or compares is UTC. Some backends
(SQLite in tests) hand back naive datetimes, so comparisons go through
``ensure_utc`` first.
"""

from datetime import date, datetime, timedelta
from typing import Optional

import pytz


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def utc_today() -> date:
    return utc_now().date()


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def days_from_now(days: int) -> datetime:
    return utc_now() + timedelta(days=days)


def nights_between(start: date, end: date) -> int:
    """Check-in/check-out semantics: number of nights between two dates."""
    return (end - start).days
