"""
Time rules and validation service.
Handles UTC normalisation, the ±30min check-in tolerance and worked-hours math.
"""
from datetime import datetime
from typing import Optional
import pytz
from ..config import settings


def utcnow() -> datetime:
    """Current server time, timezone-aware UTC."""
    return datetime.now(pytz.UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to timezone-aware UTC.
    Naive values (SQLite drops tzinfo) are assumed to already be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def is_within_tolerance(
    actual_time: datetime,
    expected_time: datetime,
    tolerance_minutes: Optional[int] = None
) -> bool:
    """
    Check if actual time is within tolerance window of expected time.

    Args:
        actual_time: Actual time (UTC, timezone-aware or naive)
        expected_time: Expected time (UTC, timezone-aware or naive)
        tolerance_minutes: Tolerance in minutes (default CLOCK_IN_WINDOW_MIN)

    Returns:
        True if within tolerance (edges inclusive)
    """
    if tolerance_minutes is None:
        tolerance_minutes = settings.clock_in_window_min

    diff = abs((ensure_utc(actual_time) - ensure_utc(expected_time)).total_seconds())
    return diff <= tolerance_minutes * 60


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours between two instants, rounded to 2 decimals."""
    elapsed = (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600
    return round(elapsed, 2)
