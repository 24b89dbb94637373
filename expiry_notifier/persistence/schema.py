"""Database schema definition and ORM models.

Timestamps are stored as fixed-width ISO 8601 strings
(``YYYY-MM-DDTHH:MM:SS.ffffffZ``) and service ID expiry dates as
``YYYY-MM-DD``, so range filters compare them lexicographically.
Recipients are stored as a compact JSON array and days_until_expiry as text.
"""

import json
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import Column, ForeignKey, Index, String, Text, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from expiry_notifier.domain.models import (
    Certificate,
    ItemType,
    NotificationRecord,
    NotificationStatus,
    ServiceId,
    Team,
    TriggeredBy,
)
from expiry_notifier.logging import get_logger
from expiry_notifier.utils.timestamps import ensure_utc, parse_iso_datetime

logger = get_logger(__name__, component="database")

Base = declarative_base()

_SUCCESS_ONLY = text("status = 'success'")


class TeamModel(Base):
    """ORM model for the teams table."""

    __tablename__ = "teams"

    id = Column(String(36), primary_key=True)
    team_name = Column(String(255), nullable=False, unique=True)

    # Comma-delimited address lists, as entered by the team
    alert1 = Column(Text, nullable=True)
    alert2 = Column(Text, nullable=True)
    alert3 = Column(Text, nullable=True)
    escalation = Column(Text, nullable=True)

    def to_domain(self) -> Team:
        return Team(
            id=self.id,
            team_name=self.team_name,
            alert1=self.alert1,
            alert2=self.alert2,
            alert3=self.alert3,
            escalation=self.escalation,
        )

    @classmethod
    def from_domain(cls, team: Team) -> "TeamModel":
        return cls(
            id=team.id,
            team_name=team.team_name,
            alert1=team.alert1,
            alert2=team.alert2,
            alert3=team.alert3,
            escalation=team.escalation,
        )


class CertificateModel(Base):
    """ORM model for the certificates table. Rows are soft-deleted via deleted_at."""

    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True)
    common_name = Column(String(255), nullable=False)
    team_id = Column(String(36), ForeignKey("teams.id"), nullable=False)
    valid_to = Column(String(50), nullable=False)
    serial_number = Column(String(128), nullable=True)
    environment = Column(String(50), nullable=True)
    deleted_at = Column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_certificates_valid_to", "valid_to"),
        Index("idx_certificates_team", "team_id"),
    )

    def to_domain(self) -> Certificate:
        return Certificate(
            id=self.id,
            common_name=self.common_name,
            team_id=self.team_id,
            valid_to=parse_iso_datetime(self.valid_to),
            serial_number=self.serial_number,
            environment=self.environment,
            deleted_at=parse_iso_datetime(self.deleted_at) if self.deleted_at else None,
        )

    @classmethod
    def from_domain(cls, certificate: Certificate) -> "CertificateModel":
        return cls(
            id=certificate.id,
            common_name=certificate.common_name,
            team_id=certificate.team_id,
            valid_to=format_db_timestamp(certificate.valid_to),
            serial_number=certificate.serial_number,
            environment=certificate.environment,
            deleted_at=format_db_timestamp(certificate.deleted_at),
        )


class ServiceIdModel(Base):
    """ORM model for the service_ids table."""

    __tablename__ = "service_ids"

    id = Column(String(36), primary_key=True)
    svcid = Column(String(255), nullable=False)
    exp_date = Column(String(10), nullable=False)
    renewing_team_id = Column(String(36), ForeignKey("teams.id"), nullable=True)
    env = Column(String(50), nullable=True)
    application = Column(String(255), nullable=True)

    __table_args__ = (Index("idx_service_ids_exp_date", "exp_date"),)

    def to_domain(self) -> ServiceId:
        return ServiceId(
            id=self.id,
            svcid=self.svcid,
            exp_date=date.fromisoformat(self.exp_date),
            renewing_team_id=self.renewing_team_id,
            env=self.env,
            application=self.application,
        )

    @classmethod
    def from_domain(cls, service_id: ServiceId) -> "ServiceIdModel":
        return cls(
            id=service_id.id,
            svcid=service_id.svcid,
            exp_date=format_db_date(service_id.exp_date),
            renewing_team_id=service_id.renewing_team_id,
            env=service_id.env,
            application=service_id.application,
        )


class NotificationHistoryModel(Base):
    """ORM model for the append-only notification_history table.

    The partial unique index allows any number of failed rows but only one
    success row per (item_id, days_until_expiry).
    """

    __tablename__ = "notification_history"

    id = Column(String(36), primary_key=True)
    item_id = Column(String(36), nullable=False)
    item_type = Column(String(20), nullable=False)
    item_name = Column(String(255), nullable=False)
    # No foreign key: history outlives the team rows it mentions
    team_id = Column(String(36), nullable=True)
    days_until_expiry = Column(String(10), nullable=False)
    notification_type = Column(String(20), nullable=False, default="email")
    recipients = Column(Text, nullable=False, default="[]")
    sent_at = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    error_message = Column(Text, nullable=True)
    triggered_by = Column(String(20), nullable=False, default="system")

    __table_args__ = (
        Index("idx_notification_history_lookup", "item_id", "days_until_expiry", "status"),
        Index("idx_notification_history_sent_at", "sent_at"),
        Index(
            "uq_notification_history_success",
            "item_id",
            "days_until_expiry",
            unique=True,
            sqlite_where=_SUCCESS_ONLY,
            postgresql_where=_SUCCESS_ONLY,
        ),
    )

    def to_domain(self, team_name: Optional[str] = None) -> NotificationRecord:
        return NotificationRecord(
            id=self.id,
            item_id=self.item_id,
            item_type=ItemType(self.item_type),
            item_name=self.item_name,
            team_id=self.team_id,
            days_until_expiry=int(self.days_until_expiry),
            notification_type=self.notification_type,
            recipients=deserialize_recipients(self.recipients),
            sent_at=parse_iso_datetime(self.sent_at),
            status=NotificationStatus(self.status),
            error_message=self.error_message,
            triggered_by=TriggeredBy(self.triggered_by),
            team_name=team_name,
        )

    @classmethod
    def from_domain(cls, record: NotificationRecord) -> "NotificationHistoryModel":
        return cls(
            id=record.id,
            item_id=record.item_id,
            item_type=ItemType(record.item_type).value,
            item_name=record.item_name,
            team_id=record.team_id,
            days_until_expiry=str(record.days_until_expiry),
            notification_type=record.notification_type,
            recipients=serialize_recipients(record.recipients),
            sent_at=format_db_timestamp(record.sent_at),
            status=NotificationStatus(record.status).value,
            error_message=record.error_message,
            triggered_by=TriggeredBy(record.triggered_by).value,
        )


def serialize_recipients(recipients: List[str]) -> str:
    """Compact JSON array, e.g. '["a@x.com","b@x.com"]'."""
    return json.dumps(list(recipients), separators=(",", ":"))


def deserialize_recipients(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return list(json.loads(raw))


def format_db_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Fixed-width UTC ISO 8601 string used for every timestamp column."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def format_db_date(value: date) -> str:
    if isinstance(value, datetime):
        value = ensure_utc(value).date()
    return value.isoformat()


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes that do not exist yet (idempotent)."""
    Base.metadata.create_all(engine, checkfirst=True)
    tables = inspect(engine).get_table_names()
    logger.info(
        f"Database schema ready. Tables: {', '.join(sorted(tables))}",
        extra={"event": "database.schema.ready"},
    )
