"""Shared clock and calendar helpers for wordwanderer-economy."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def resolve_timezone(name: str | None) -> tzinfo | None:
    """ZoneInfo for *name*, or None to mean server-local time."""
    if not name:
        return None
    return ZoneInfo(name)


def system_clock(tz: tzinfo | None = None) -> Clock:
    """Return a clock producing timezone-aware 'now' values."""
    def _now() -> datetime:
        return datetime.now(timezone.utc).astimezone(tz)

    return _now


def local_date(dt: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of *dt* in the day-boundary timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz).date()


def is_same_day(left: datetime | None, right: datetime | None, tz: tzinfo | None = None) -> bool:
    if left is None or right is None:
        return False
    return local_date(left, tz) == local_date(right, tz)


def calendar_days_between(earlier: date, later: date) -> int:
    """Whole calendar days from *earlier* to *later* (negative if reversed)."""
    return (later - earlier).days


def seconds_until_midnight(now: datetime, tz: tzinfo | None = None) -> int:
    """Seconds left until the next local midnight, never negative."""
    local_now = now.astimezone(tz)
    next_day = local_date(now, tz) + timedelta(days=1)
    midnight = datetime(next_day.year, next_day.month, next_day.day, tzinfo=local_now.tzinfo)
    # Same-zone subtraction ignores DST offsets, so compare in UTC
    remaining = midnight.astimezone(timezone.utc) - now.astimezone(timezone.utc)
    return max(0, round(remaining.total_seconds()))


def ceil_seconds(delta: timedelta) -> int:
    """Round a duration up to whole seconds, clamped at zero."""
    return max(0, math.ceil(delta.total_seconds()))


def parse_timestamp(ts: str | None) -> datetime | None:
    """Parse an ISO timestamp string to a timezone-aware datetime, or None."""
    if not isinstance(ts, str) or not ts:
        return None
    try:
        if ts.endswith("Z"):
            ts = ts[:-1] + "+00:00"
        dt = datetime.fromisoformat(ts)
        # Naive values are stored as UTC
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except (ValueError, TypeError):
        return None


def parse_date(value: str | None) -> date | None:
    """Parse a YYYY-MM-DD string (or a full timestamp) to a date, or None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except (ValueError, TypeError):
        return None


def format_timestamp(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None
