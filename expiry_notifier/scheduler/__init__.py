"""Scheduling module for periodic expiry checks."""

from .service import JOB_ID, SchedulerService

__all__ = [
    "JOB_ID",
    "SchedulerService",
]
