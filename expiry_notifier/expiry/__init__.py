"""Expiry detection for certificates and service IDs."""

from .query import DEFAULT_LOOKAHEAD_DAYS, ExpiryQuery, compute_days_remaining

__all__ = ["DEFAULT_LOOKAHEAD_DAYS", "ExpiryQuery", "compute_days_remaining"]
