"""Periodic execution of the expiry check."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from expiry_notifier.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "expiry-check"


class SchedulerService:
    """
    Runs the expiry check on a fixed interval in a background thread.

    The first run fires immediately on start(). Overlapping runs are
    prevented (max_instances=1) and a backlog of missed runs collapses
    into one (coalesce=True). Errors raised by the job are logged and
    never stop the schedule.

    Args:
        check_callable: Called with no arguments on every tick
        interval_seconds: Seconds between runs
        scheduler: Pre-built APScheduler scheduler (tests inject a mock)
        shutdown_event: Set when shutdown() completes
    """

    def __init__(
        self,
        check_callable: Callable[[], object],
        interval_seconds: int,
        scheduler: Optional[BackgroundScheduler] = None,
        shutdown_event: Optional[threading.Event] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got: {interval_seconds}")
        self.check_callable = check_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the job with an immediate first run and start the scheduler."""
        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self._run_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=JOB_ID,
            name="Certificate and service ID expiry check",
            replace_existing=True,
            next_run_time=next_run,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler. With wait=True, block until a running check finishes."""
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self):
        """Run a check synchronously in the calling thread and return its result."""
        logger.info("Triggering immediate expiry check", extra={"event": "scheduler.trigger_now"})
        return self.check_callable()

    def is_running(self) -> bool:
        return bool(self.scheduler.running)

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def _run_job(self) -> None:
        try:
            self.check_callable()
        except Exception as e:
            logger.error(
                f"Scheduled expiry check failed: {e}",
                extra={"event": "scheduler.job.failed", "error_type": type(e).__name__},
                exc_info=True,
            )
