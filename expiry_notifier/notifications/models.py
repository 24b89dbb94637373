"""Outcome types and exceptions for the notification dispatcher."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class NotificationError(Exception):
    """Base exception for notification-related errors."""


class NotificationTemplateError(NotificationError):
    """Template rendering failed (missing template or undefined variable)."""


class SMTPConfigurationError(NotificationError):
    """SMTP settings are missing; retrying cannot help."""


class SMTPDeliveryError(NotificationError):
    """SMTP delivery failed after all retry attempts."""


class NotificationDeliveryError(NotificationError):
    """Sending failed for one item after its failure was recorded.

    Raised by the dispatcher so the runner can isolate the failure to this
    item. The underlying transport error is available as __cause__.
    """

    def __init__(
        self,
        message: str,
        item_id: str,
        days_until_expiry: int,
        recipients: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.item_id = item_id
        self.days_until_expiry = days_until_expiry
        self.recipients = list(recipients or [])


class OutcomeStatus(str, Enum):
    """Terminal state of one item within one run."""

    SENT = "sent"
    SKIPPED_NO_THRESHOLD = "skipped_no_threshold"
    SKIPPED_ALREADY_SENT = "skipped_already_sent"
    FAILED_NO_CONTACTS = "failed_no_contacts"
    FAILED_SEND_ERROR = "failed_send_error"
    FAILED_ERROR = "failed_error"


_FAILED_STATUSES = {
    OutcomeStatus.FAILED_NO_CONTACTS,
    OutcomeStatus.FAILED_SEND_ERROR,
    OutcomeStatus.FAILED_ERROR,
}


@dataclass
class ItemOutcome:
    """What happened to one expiring item during a run.

    Attributes:
        item_id: Certificate or service ID identifier
        item_type: "certificate" or "serviceId"
        item_name: Display name used in the email
        days_remaining: Whole days until expiry at run time
        status: Terminal state for this item
        recipients: Addresses the message was (or would have been) sent to
        error: Error message for failed outcomes
    """

    item_id: str
    item_type: str
    item_name: str
    days_remaining: int
    status: OutcomeStatus
    recipients: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_failure(self) -> bool:
        return self.status in _FAILED_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_type": self.item_type,
            "item_name": self.item_name,
            "days_remaining": self.days_remaining,
            "status": self.status.value,
            "recipients": list(self.recipients),
            "error": self.error,
        }
