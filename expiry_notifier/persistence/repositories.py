"""Data access layer (repositories) for persistence operations.

Repositories wrap a SQLAlchemy session and return domain models, never ORM
rows. The notification history repository is insert-only.
"""

import uuid
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from expiry_notifier.domain.models import (
    Certificate,
    NotificationRecord,
    NotificationStatus,
    ServiceId,
    Team,
)
from expiry_notifier.logging import get_logger
from expiry_notifier.utils.timestamps import utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    CertificateModel,
    NotificationHistoryModel,
    ServiceIdModel,
    TeamModel,
    format_db_date,
    format_db_timestamp,
)

logger = get_logger(__name__, component="repository")


class _Repository:
    """Shared session handling and error translation."""

    entity = "record"

    def __init__(self, session: Session):
        self.session = session

    def _add(self, model):
        try:
            self.session.add(model)
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DataIntegrityError(
                f"Failed to add {self.entity} due to constraint violation: {e.orig}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                f"Error adding {self.entity}: {e}",
                extra={"event": "repository.write_failed", "entity": self.entity},
                exc_info=True,
            )
            raise PersistenceError(f"Failed to add {self.entity}: {e}") from e
        return model

    def _fetch(self, stmt):
        try:
            return self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                f"Error querying {self.entity}: {e}",
                extra={"event": "repository.query_failed", "entity": self.entity},
                exc_info=True,
            )
            raise PersistenceError(f"Failed to query {self.entity}: {e}") from e


class TeamRepository(_Repository):
    """Teams and their contact slots."""

    entity = "team"

    def add(self, team: Team) -> Team:
        return self._add(TeamModel.from_domain(team)).to_domain()

    def get_by_id(self, team_id: str) -> Optional[Team]:
        row = self._fetch(select(TeamModel).where(TeamModel.id == team_id)).scalar_one_or_none()
        return row.to_domain() if row else None

    def get_name_map(self, team_ids: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """Map team id to display name, optionally restricted to team_ids."""
        stmt = select(TeamModel.id, TeamModel.team_name)
        if team_ids is not None:
            ids = {tid for tid in team_ids if tid}
            if not ids:
                return {}
            stmt = stmt.where(TeamModel.id.in_(ids))
        return {row.id: row.team_name for row in self._fetch(stmt)}


class CertificateRepository(_Repository):
    """Certificates, excluding soft-deleted rows from expiry queries."""

    entity = "certificate"

    def add(self, certificate: Certificate) -> Certificate:
        return self._add(CertificateModel.from_domain(certificate)).to_domain()

    def get_by_id(self, certificate_id: str) -> Optional[Certificate]:
        row = self._fetch(
            select(CertificateModel).where(CertificateModel.id == certificate_id)
        ).scalar_one_or_none()
        return row.to_domain() if row else None

    def soft_delete(self, certificate_id: str, deleted_at: Optional[datetime] = None) -> None:
        """Mark a certificate deleted so expiry queries skip it.

        Raises:
            RecordNotFoundError: If the certificate does not exist
        """
        row = self.session.get(CertificateModel, certificate_id)
        if row is None:
            raise RecordNotFoundError(f"Certificate {certificate_id} not found")
        row.deleted_at = format_db_timestamp(deleted_at or utc_now())
        self.session.flush()

    def get_expiring(self, after: datetime, until: datetime) -> List[Certificate]:
        """Live certificates with after < valid_to <= until, soonest first."""
        stmt = (
            select(CertificateModel)
            .where(
                CertificateModel.valid_to > format_db_timestamp(after),
                CertificateModel.valid_to <= format_db_timestamp(until),
                CertificateModel.deleted_at.is_(None),
            )
            .order_by(CertificateModel.valid_to, CertificateModel.id)
        )
        return [row.to_domain() for row in self._fetch(stmt).scalars()]


class ServiceIdRepository(_Repository):
    """Service IDs, compared at date granularity."""

    entity = "service ID"

    def add(self, service_id: ServiceId) -> ServiceId:
        return self._add(ServiceIdModel.from_domain(service_id)).to_domain()

    def get_by_id(self, record_id: str) -> Optional[ServiceId]:
        row = self._fetch(
            select(ServiceIdModel).where(ServiceIdModel.id == record_id)
        ).scalar_one_or_none()
        return row.to_domain() if row else None

    def get_expiring(
        self, after: date, until: date, include_unassigned: bool = False
    ) -> List[ServiceId]:
        """Service IDs with after < exp_date <= until, soonest first.

        Rows without a renewing team are left out unless include_unassigned.
        """
        stmt = select(ServiceIdModel).where(
            ServiceIdModel.exp_date > format_db_date(after),
            ServiceIdModel.exp_date <= format_db_date(until),
        )
        if not include_unassigned:
            stmt = stmt.where(ServiceIdModel.renewing_team_id.is_not(None))
        stmt = stmt.order_by(ServiceIdModel.exp_date, ServiceIdModel.id)
        return [row.to_domain() for row in self._fetch(stmt).scalars()]


class NotificationHistoryRepository(_Repository):
    """Append-only ledger of notification attempts.

    There are deliberately no update or delete methods.
    """

    entity = "notification history record"

    def record(self, entry: NotificationRecord) -> NotificationRecord:
        """Insert one history row, filling id and sent_at when missing.

        Raises:
            DataIntegrityError: If a success row for the same item and
                threshold day already exists
            PersistenceError: On any other database error
        """
        updates = {}
        if entry.id is None:
            updates["id"] = str(uuid.uuid4())
        if entry.sent_at is None:
            updates["sent_at"] = utc_now()
        if updates:
            entry = entry.model_copy(update=updates)

        self._add(NotificationHistoryModel.from_domain(entry))
        logger.debug(
            "Notification history recorded",
            extra={
                "event": "history.recorded",
                "item_id": entry.item_id,
                "days_until_expiry": entry.days_until_expiry,
                "status": NotificationStatus(entry.status).value,
            },
        )
        return entry

    def exists(
        self,
        item_id: str,
        days_until_expiry: int,
        status: NotificationStatus = NotificationStatus.SUCCESS,
    ) -> bool:
        stmt = (
            select(NotificationHistoryModel.id)
            .where(
                NotificationHistoryModel.item_id == item_id,
                NotificationHistoryModel.days_until_expiry == str(days_until_expiry),
                NotificationHistoryModel.status == NotificationStatus(status).value,
            )
            .limit(1)
        )
        return self._fetch(stmt).first() is not None

    def list_recent(self, limit: int = 100) -> List[NotificationRecord]:
        """Newest records first, each carrying its team's display name."""
        stmt = (
            select(NotificationHistoryModel, TeamModel.team_name)
            .outerjoin(TeamModel, TeamModel.id == NotificationHistoryModel.team_id)
            .order_by(NotificationHistoryModel.sent_at.desc(), NotificationHistoryModel.id)
            .limit(limit)
        )
        return [row.to_domain(team_name=name) for row, name in self._fetch(stmt)]
