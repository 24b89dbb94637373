"""Utility functions for time handling."""

from .timestamps import (
    ceil_days_between,
    date_to_utc_datetime,
    ensure_utc,
    format_timestamp,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "date_to_utc_datetime",
    "ceil_days_between",
]
