"""Expiry alert notifications.

- NotificationDispatcher: threshold match, dedup, contacts, send, record
- SMTPClient: smtplib transport with TLS and retry/backoff
- TemplateRenderer: Jinja2 subject/HTML/text rendering
- ItemOutcome / OutcomeStatus: per-item result of a run
"""

from .models import (
    ItemOutcome,
    NotificationDeliveryError,
    NotificationError,
    NotificationTemplateError,
    OutcomeStatus,
    SMTPConfigurationError,
    SMTPDeliveryError,
)
from .payloads import build_notification_context, item_label
from .schedule import days_until_next_notification, is_trigger_day, next_notification_day
from .service import NO_CONTACTS_MESSAGE, NotificationDispatcher
from .smtp_client import SMTPClient, build_sender_address, parse_recipients
from .templates import TemplateRenderer

__all__ = [
    # Dispatcher
    "NotificationDispatcher",
    "NO_CONTACTS_MESSAGE",
    # Results
    "ItemOutcome",
    "OutcomeStatus",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "NotificationDeliveryError",
    "SMTPConfigurationError",
    "SMTPDeliveryError",
    # Components
    "SMTPClient",
    "TemplateRenderer",
    # Utilities
    "build_notification_context",
    "build_sender_address",
    "days_until_next_notification",
    "is_trigger_day",
    "item_label",
    "next_notification_day",
    "parse_recipients",
]
