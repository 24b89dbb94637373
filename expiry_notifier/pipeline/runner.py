"""Expiry check orchestration.

One run: query everything expiring inside the lookahead window, then hand
each item to the dispatcher in its own database transaction. A failure on
one item is recorded and the run moves on; only a failure to query the
items at all aborts the run.
"""

import threading
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from expiry_notifier.config.models import AppConfig
from expiry_notifier.contacts.resolver import ContactResolver
from expiry_notifier.domain.models import ExpiringItem, NotificationRecord, TriggeredBy
from expiry_notifier.expiry.query import ExpiryQuery
from expiry_notifier.logging import get_logger, log_context
from expiry_notifier.notifications.models import (
    ItemOutcome,
    NotificationDeliveryError,
    OutcomeStatus,
)
from expiry_notifier.notifications.schedule import (
    days_until_next_notification,
    next_notification_day,
)
from expiry_notifier.notifications.service import NotificationDispatcher
from expiry_notifier.persistence.database import get_session
from expiry_notifier.persistence.repositories import (
    CertificateRepository,
    NotificationHistoryRepository,
    ServiceIdRepository,
    TeamRepository,
)
from expiry_notifier.utils.timestamps import format_timestamp, utc_now

from .models import CheckRunResult

logger = get_logger(__name__, component="runner")

SessionFactory = Callable[[], AbstractContextManager]


class ExpiryCheckRunner:
    """
    Runs expiry checks and serves the read-side views built on them.

    Args:
        app_config: Application configuration (notification tables, API limits)
        dispatcher: Per-item notification state machine
        session_factory: Returns a session context manager; defaults to get_session
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        app_config: AppConfig,
        dispatcher: NotificationDispatcher,
        session_factory: SessionFactory = get_session,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.app_config = app_config
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.clock = clock
        self._lock = threading.Lock()

    @property
    def notifications_config(self):
        return self.app_config.notifications

    def check_and_send_notifications(
        self, triggered_by: TriggeredBy = TriggeredBy.SYSTEM
    ) -> CheckRunResult:
        """
        Execute one complete check.

        Returns:
            CheckRunResult; skipped=True when another run is in progress

        Raises:
            PersistenceError: If the expiring items cannot be queried
        """
        triggered_by = TriggeredBy(triggered_by)
        run_id = uuid4().hex
        started_at = self.clock()

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Expiry check skipped: previous run still in progress",
                    extra={"event": "expiry_check.run.skipped", "reason": "lock_held"},
                )
            return CheckRunResult(
                run_id=run_id,
                triggered_by=triggered_by,
                run_started_at=started_at,
                run_finished_at=self.clock(),
                skipped=True,
            )

        try:
            with log_context(run_id=run_id, triggered_by=triggered_by.value):
                logger.info(
                    "Expiry check started",
                    extra={"event": "expiry_check.run.started"},
                )

                try:
                    items = self._fetch_items(started_at)
                except Exception as e:
                    logger.error(
                        f"Expiry check aborted: could not query expiring items: {e}",
                        extra={"event": "expiry_check.run.failed", "error_type": type(e).__name__},
                        exc_info=True,
                    )
                    raise

                outcomes = [self._process_item(item, triggered_by) for item in items]

                result = CheckRunResult(
                    run_id=run_id,
                    triggered_by=triggered_by,
                    run_started_at=started_at,
                    run_finished_at=self.clock(),
                    outcomes=outcomes,
                )
                logger.info(
                    f"Expiry check completed: {result.total_items} item(s), "
                    f"{result.sent_count} sent, {result.failed_count} failed",
                    extra={
                        "event": "expiry_check.run.completed",
                        "total_items": result.total_items,
                        "sent": result.sent_count,
                        "failed": result.failed_count,
                        "degraded": result.degraded,
                        "duration_seconds": round(result.duration_seconds, 3),
                    },
                )
                return result
        finally:
            self._lock.release()

    # The scheduler and CLI call the runner through this shorter name
    run_once = check_and_send_notifications

    def get_upcoming(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Every item in the window, including service IDs without a team.

        Each entry carries the next trigger day it will hit; sorted soonest first.
        """
        now = now or self.clock()
        with self.session_factory() as session:
            items = self._query(session).get_expiring_items(now, include_unassigned=True)

        trigger_days = self.notifications_config.trigger_days
        upcoming = []
        for item in items:
            days = max(item.days_remaining, 0)
            upcoming.append(
                {
                    "id": item.id,
                    "name": item.name,
                    "type": item.type.value,
                    "expiry_date": format_timestamp(item.expiry_date),
                    "team_id": item.team_id,
                    "days_remaining": days,
                    "next_notification_day": next_notification_day(days, trigger_days),
                    "days_until_next_notification": days_until_next_notification(days, trigger_days),
                }
            )
        upcoming.sort(key=lambda entry: (entry["days_remaining"], entry["name"]))
        return upcoming

    def get_history(self, limit: Optional[int] = None) -> List[NotificationRecord]:
        """Most recent notification history records with team names."""
        limit = limit or self.app_config.api.history_limit
        with self.session_factory() as session:
            return NotificationHistoryRepository(session).list_recent(limit=limit)

    def _query(self, session: Session) -> ExpiryQuery:
        return ExpiryQuery(
            CertificateRepository(session),
            ServiceIdRepository(session),
            lookahead_days=self.notifications_config.lookahead_days,
            clock=self.clock,
        )

    def _fetch_items(self, now: datetime) -> List[ExpiringItem]:
        with self.session_factory() as session:
            return self._query(session).get_expiring_items(now)

    def _process_item(self, item: ExpiringItem, triggered_by: TriggeredBy) -> ItemOutcome:
        try:
            with self.session_factory() as session:
                history_repo = NotificationHistoryRepository(session)
                resolver = ContactResolver(TeamRepository(session), self.notifications_config)
                try:
                    return self.dispatcher.process_item(item, triggered_by, history_repo, resolver)
                except NotificationDeliveryError as e:
                    # Returning inside the session keeps the failed record committed
                    return ItemOutcome(
                        item_id=item.id,
                        item_type=item.type.value,
                        item_name=item.name,
                        days_remaining=item.days_remaining,
                        status=OutcomeStatus.FAILED_SEND_ERROR,
                        recipients=e.recipients,
                        error=str(e.__cause__ or e),
                    )
        except Exception as e:
            logger.error(
                f"Unexpected error processing {item.type.value} {item.id}: {e}",
                extra={
                    "event": "notification.failed",
                    "item_id": item.id,
                    "item_type": item.type.value,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            return ItemOutcome(
                item_id=item.id,
                item_type=item.type.value,
                item_name=item.name,
                days_remaining=item.days_remaining,
                status=OutcomeStatus.FAILED_ERROR,
                error=str(e),
            )
