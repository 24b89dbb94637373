"""Domain models for the Expiry Notifier."""

from .models import (
    Certificate,
    ContactTier,
    ExpiringItem,
    ItemType,
    NotificationRecord,
    NotificationStatus,
    ServiceId,
    Team,
    TriggeredBy,
)

__all__ = [
    "Team",
    "Certificate",
    "ServiceId",
    "ExpiringItem",
    "NotificationRecord",
    "ItemType",
    "ContactTier",
    "NotificationStatus",
    "TriggeredBy",
]
