"""Timestamp utilities for UTC handling and day arithmetic.

This module provides utilities for working with timestamps in UTC:
- Getting current UTC time
- Parsing ISO 8601 datetime strings
- Converting timezone-naive to timezone-aware UTC
- Whole-day differences used for expiry thresholds
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

_ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC time with timezone info

    Example:
        >>> now = utc_now()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    If the datetime is timezone-naive, it's treated as UTC.
    If the datetime has a different timezone, it's converted to UTC.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def date_to_utc_datetime(value: Union[date, datetime]) -> datetime:
    """Interpret a calendar date as midnight UTC.

    Datetimes are passed through ensure_utc unchanged.

    Example:
        >>> date_to_utc_datetime(date(2025, 11, 4)).isoformat()
        '2025-11-04T00:00:00+00:00'
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def ceil_days_between(start: datetime, end: datetime) -> int:
    """Number of days from start to end, rounded up to a whole day.

    Uses timedelta floor division so the result is an exact integer.

    Example:
        >>> a = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
        >>> ceil_days_between(a, a + timedelta(days=29, hours=1))
        30
        >>> ceil_days_between(a, a + timedelta(days=30))
        30
    """
    start_utc = ensure_utc(start)
    end_utc = ensure_utc(end)
    return -((start_utc - end_utc) // _ONE_DAY)


def parse_iso_datetime(iso_string: str) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports:
    - 2025-11-04T12:00:00Z
    - 2025-11-04T12:00:00.123456Z
    - 2025-11-04T12:00:00+00:00
    - 2025-11-04

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        try:
            return ensure_utc(datetime.strptime(iso_string.strip(), "%Y-%m-%d"))
        except ValueError:
            return None


def format_timestamp(dt: datetime, include_microseconds: bool = False) -> str:
    """Format a datetime as ISO 8601 string in UTC.

    Args:
        dt: Datetime to format
        include_microseconds: Whether to include microseconds in output

    Returns:
        ISO 8601 formatted string with 'Z' suffix

    Example:
        >>> dt = datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc)
        >>> format_timestamp(dt)
        '2025-11-04T12:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""

    if include_microseconds:
        return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")
