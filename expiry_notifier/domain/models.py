"""Core domain models for teams, tracked items, and notification history.

This module defines the data structures used throughout the application:
- Team: a team with its four tiers of alert contacts
- Certificate / ServiceId: persisted items whose expiry is tracked
- ExpiringItem: transient view of an item inside the lookahead window
- NotificationRecord: one entry of the append-only notification ledger
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ItemType(str, Enum):
    """Kinds of tracked items."""

    CERTIFICATE = "certificate"
    SERVICE_ID = "serviceId"


class ContactTier(str, Enum):
    """Contact slots held by a team, from near-term to last resort."""

    ALERT1 = "alert1"
    ALERT2 = "alert2"
    ALERT3 = "alert3"
    ESCALATION = "escalation"


class NotificationStatus(str, Enum):
    """Outcome stored on a notification history record."""

    SUCCESS = "success"
    FAILED = "failed"


class TriggeredBy(str, Enum):
    """Who started the run that produced a notification."""

    SYSTEM = "system"
    ADMIN = "admin"


def _to_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class Team(BaseModel):
    """Team with its alert contact slots.

    Each slot is the raw comma-delimited string as stored; use
    app-level contact resolution to turn a slot into addresses.
    """

    id: str = Field(..., description="Team identifier")
    team_name: str = Field(..., description="Unique display name")
    alert1: Optional[str] = Field(None, description="Near-term contacts")
    alert2: Optional[str] = Field(None, description="Mid-term contacts")
    alert3: Optional[str] = Field(None, description="Longest lead time contacts")
    escalation: Optional[str] = Field(None, description="Last resort contacts")

    @field_validator("team_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Strip whitespace from the team name."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return v.strip()

    def contacts_for(self, tier: ContactTier) -> Optional[str]:
        """Raw contact string stored in the given slot."""
        return getattr(self, ContactTier(tier).value)

    model_config = {"json_schema_extra": {"example": {
        "id": "6f1c1c8e-0d7a-4a0e-9a55-1d2f9b0c3e11",
        "team_name": "Payments Platform",
        "alert1": "oncall@example.com",
        "alert2": "leads@example.com",
        "alert3": "team@example.com",
        "escalation": "director@example.com",
    }}}


class Certificate(BaseModel):
    """Certificate tracked for a team."""

    id: str = Field(..., description="Certificate identifier")
    common_name: str = Field(..., description="Certificate common name")
    team_id: str = Field(..., description="Owning team")
    valid_to: datetime = Field(..., description="Expiry timestamp (UTC)")
    serial_number: Optional[str] = Field(None, description="Certificate serial number")
    environment: Optional[str] = Field(None, description="Deployment environment label")
    deleted_at: Optional[datetime] = Field(None, description="Soft-delete timestamp (UTC)")

    @field_validator("valid_to", "deleted_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return _to_utc(v)


class ServiceId(BaseModel):
    """Service credential tracked for a renewing team."""

    id: str = Field(..., description="Service ID record identifier")
    svcid: str = Field(..., description="Service account name")
    exp_date: date = Field(..., description="Expiry date")
    renewing_team_id: Optional[str] = Field(None, description="Team that renews it")
    env: Optional[str] = Field(None, description="Environment label")
    application: Optional[str] = Field(None, description="Owning application")


class ExpiringItem(BaseModel):
    """Certificate or service ID inside the lookahead window.

    Computed on every run and never stored. days_remaining is the whole
    number of days until expiry, rounded up.
    """

    id: str
    name: str
    type: ItemType
    expiry_date: datetime
    team_id: Optional[str] = None
    days_remaining: int

    @field_validator("expiry_date")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware and in UTC."""
        return _to_utc(v)

    @property
    def is_certificate(self) -> bool:
        return self.type == ItemType.CERTIFICATE


class NotificationRecord(BaseModel):
    """Entry in the notification history ledger.

    Created once per attempt and never updated. A success record for
    (item_id, days_until_expiry) is what marks a threshold as notified.
    """

    id: Optional[str] = Field(None, description="Assigned on insert when missing")
    item_id: str
    item_type: ItemType
    item_name: str
    team_id: Optional[str] = None
    days_until_expiry: int
    notification_type: str = "email"
    recipients: List[str] = Field(default_factory=list)
    sent_at: Optional[datetime] = Field(None, description="Assigned on insert when missing")
    status: NotificationStatus
    error_message: Optional[str] = None
    triggered_by: TriggeredBy = TriggeredBy.SYSTEM
    team_name: Optional[str] = Field(None, description="Filled by history listings only")

    @field_validator("sent_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return _to_utc(v)

    model_config = {"json_schema_extra": {"example": {
        "item_id": "c1",
        "item_type": "certificate",
        "item_name": "example.com",
        "team_id": "t1",
        "days_until_expiry": 30,
        "recipients": ["a@x.com", "b@x.com"],
        "status": "success",
        "triggered_by": "system",
    }}}
