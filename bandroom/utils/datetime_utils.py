"""
Datetime utility functions.
Provides timezone-aware helpers and display formatting for session dates/times.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to UTC.

    SQLite returns naive datetimes for timezone-aware columns; those are
    stored as UTC, so naive values are tagged rather than converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def latest(*values: Optional[datetime]) -> Optional[datetime]:
    """Return the latest of the given datetimes, ignoring None."""
    present = [ensure_utc(v) for v in values if v is not None]
    if not present:
        return None
    return max(present)


def format_display_date(date_str: str) -> str:
    """
    Format an ISO date for messages, e.g. "2026-03-14" -> "March 14".

    Returns the input unchanged when it can't be parsed.
    """
    try:
        parsed = datetime.strptime(date_str.strip(), "%Y-%m-%d")
    except (ValueError, AttributeError):
        return date_str
    return f"{parsed.strftime('%B')} {parsed.day}"


def format_display_time(time_str: str) -> str:
    """
    Format a 24h time for messages, e.g. "19:30:00" -> "7:30 PM".

    Accepts HH:MM or HH:MM:SS. Returns the input unchanged when it can't be parsed.
    """
    value = (time_str or "").strip()
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        hour = parsed.hour % 12 or 12
        suffix = "AM" if parsed.hour < 12 else "PM"
        return f"{hour}:{parsed.minute:02d} {suffix}"
    return time_str
