"""
Date helpers.

All calendar dates are UTC dates. A review scheduled for a date is due for
the whole of that UTC day, whatever the time of day of the request.
Naive datetimes are interpreted as UTC.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_date(moment: datetime) -> date:
    """UTC calendar date of ``moment``."""
    return ensure_utc(moment).date()


def utc_today(clock: Clock = utc_now) -> date:
    return utc_date(clock())
