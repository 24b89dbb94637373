"""Expiry check orchestration."""

from .models import CheckRunResult
from .runner import ExpiryCheckRunner

__all__ = [
    "ExpiryCheckRunner",
    "CheckRunResult",
]
