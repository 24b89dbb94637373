"""Notification dispatcher: decides, sends and records expiry alerts.

For one expiring item the dispatcher walks this path:

    threshold match -> already sent? -> resolve contacts -> send -> record

Exactly one history record is written for every attempt that gets past the
first two checks, and a success record is never written twice for the same
(item, threshold day).
"""

import logging
from typing import List, Optional

from expiry_notifier.config.models import NotificationsConfig
from expiry_notifier.contacts.resolver import ContactResolver
from expiry_notifier.domain.models import (
    ExpiringItem,
    NotificationRecord,
    NotificationStatus,
    TriggeredBy,
)
from expiry_notifier.logging import get_logger, log_context
from expiry_notifier.persistence.exceptions import DataIntegrityError
from expiry_notifier.persistence.repositories import NotificationHistoryRepository

from .models import ItemOutcome, NotificationDeliveryError, OutcomeStatus
from .payloads import build_notification_context
from .schedule import is_trigger_day
from .smtp_client import SMTPClient
from .templates import TemplateRenderer

logger = get_logger(__name__, component="dispatcher")

NO_CONTACTS_MESSAGE = "No contacts found for team"
TEST_EMAIL_SUBJECT = "Test Email from Notification System"


class NotificationDispatcher:
    """Runs the per-item notification state machine.

    Args:
        smtp_client: Transport with send(to, subject, html, text)
        notifications_config: Trigger days and urgency threshold
        template_renderer: Renders subject/HTML/text (default renderer if None)
        subject_prefix: Prepended to every alert subject
    """

    def __init__(
        self,
        smtp_client: SMTPClient,
        notifications_config: Optional[NotificationsConfig] = None,
        template_renderer: Optional[TemplateRenderer] = None,
        subject_prefix: str = "",
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.smtp_client = smtp_client
        self.config = notifications_config or NotificationsConfig()
        self.template_renderer = template_renderer or TemplateRenderer()
        self.subject_prefix = subject_prefix
        self.logger = logger_instance or logger

    def process_item(
        self,
        item: ExpiringItem,
        triggered_by: TriggeredBy,
        history_repo: NotificationHistoryRepository,
        resolver: ContactResolver,
    ) -> ItemOutcome:
        """Notify the item's team if today is one of its trigger days.

        Returns:
            ItemOutcome with status sent, skipped_no_threshold,
            skipped_already_sent or failed_no_contacts

        Raises:
            NotificationDeliveryError: Sending failed; a failed record has
                already been written and the original error is chained
        """
        triggered_by = TriggeredBy(triggered_by)
        days = item.days_remaining

        with log_context(item_id=item.id, item_type=item.type.value, days_remaining=days):
            if not is_trigger_day(days, self.config.trigger_days):
                self.logger.debug(
                    f"{item.name}: {days} days remaining is not a trigger day",
                    extra={"event": "notification.skip", "reason": "no_threshold"},
                )
                return self._outcome(item, OutcomeStatus.SKIPPED_NO_THRESHOLD)

            if history_repo.exists(item.id, days, NotificationStatus.SUCCESS):
                self.logger.info(
                    f"{item.name}: {days}-day notification already sent",
                    extra={"event": "notification.duplicate"},
                )
                return self._outcome(item, OutcomeStatus.SKIPPED_ALREADY_SENT)

            contacts = resolver.resolve_contacts(item.team_id, days)
            if not contacts:
                self.logger.warning(
                    f"{item.name}: no contacts for team {item.team_id} at {days} days",
                    extra={"event": "notification.no_contacts", "team_id": item.team_id},
                )
                history_repo.record(
                    self._record(item, [], NotificationStatus.FAILED, triggered_by, NO_CONTACTS_MESSAGE)
                )
                return self._outcome(
                    item, OutcomeStatus.FAILED_NO_CONTACTS, error=NO_CONTACTS_MESSAGE
                )

            try:
                rendered = self.template_renderer.render(
                    build_notification_context(
                        item,
                        urgent_threshold_days=self.config.urgent_threshold_days,
                        team_name=resolver.team_name(item.team_id),
                        subject_prefix=self.subject_prefix,
                    )
                )
                for contact in contacts:
                    self.smtp_client.send(
                        contact, rendered["subject"], rendered["html_body"], rendered["text_body"]
                    )
            except Exception as e:
                self.logger.error(
                    f"{item.name}: sending the {days}-day notification failed: {e}",
                    extra={
                        "event": "notification.failed",
                        "error_type": type(e).__name__,
                        "recipients": contacts,
                    },
                )
                history_repo.record(
                    self._record(item, contacts, NotificationStatus.FAILED, triggered_by, str(e))
                )
                raise NotificationDeliveryError(
                    f"Failed to notify {item.name} at {days} days: {e}",
                    item_id=item.id,
                    days_until_expiry=days,
                    recipients=contacts,
                ) from e

            try:
                history_repo.record(
                    self._record(item, contacts, NotificationStatus.SUCCESS, triggered_by)
                )
            except DataIntegrityError:
                # Another process recorded the same threshold between our check and insert
                self.logger.warning(
                    f"{item.name}: {days}-day notification recorded concurrently",
                    extra={"event": "notification.duplicate", "detected": "late"},
                )
                return self._outcome(item, OutcomeStatus.SKIPPED_ALREADY_SENT, contacts)

            self.logger.info(
                f"{item.name}: {days}-day notification sent to {len(contacts)} recipient(s)",
                extra={"event": "notification.sent", "recipients": contacts},
            )
            return self._outcome(item, OutcomeStatus.SENT, contacts)

    def send_test_email(self, to: str) -> None:
        """Send the fixed test message. Transport errors propagate."""
        html = self.template_renderer.render_test_email()
        self.smtp_client.send(
            to,
            TEST_EMAIL_SUBJECT,
            html,
            "This is a test email from the notification system.",
        )
        self.logger.info(
            f"Test email sent to {to}",
            extra={"event": "notification.test_email.sent", "recipient": to},
        )

    @staticmethod
    def _record(
        item: ExpiringItem,
        recipients: List[str],
        status: NotificationStatus,
        triggered_by: TriggeredBy,
        error_message: Optional[str] = None,
    ) -> NotificationRecord:
        return NotificationRecord(
            item_id=item.id,
            item_type=item.type,
            item_name=item.name,
            team_id=item.team_id,
            days_until_expiry=item.days_remaining,
            recipients=list(recipients),
            status=status,
            error_message=error_message,
            triggered_by=triggered_by,
        )

    @staticmethod
    def _outcome(
        item: ExpiringItem,
        status: OutcomeStatus,
        recipients: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> ItemOutcome:
        return ItemOutcome(
            item_id=item.id,
            item_type=item.type.value,
            item_name=item.name,
            days_remaining=item.days_remaining,
            status=status,
            recipients=list(recipients or []),
            error=error,
        )
