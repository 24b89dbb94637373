"""Expiry query layer.

Turns persisted certificates and service IDs into ExpiringItem values for
everything that expires inside the lookahead window. Read-only.
"""

from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Union

from expiry_notifier.domain.models import Certificate, ExpiringItem, ItemType, ServiceId
from expiry_notifier.logging import get_logger
from expiry_notifier.persistence.repositories import CertificateRepository, ServiceIdRepository
from expiry_notifier.utils.timestamps import ceil_days_between, date_to_utc_datetime, ensure_utc, utc_now

logger = get_logger(__name__, component="expiry_query")

DEFAULT_LOOKAHEAD_DAYS = 90


def compute_days_remaining(expiry: Union[date, datetime], now: datetime) -> int:
    """Whole days until expiry, rounded up.

    A bare date counts as midnight UTC of that day.

    Example:
        >>> now = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
        >>> compute_days_remaining(now + timedelta(days=29, hours=1), now)
        30
    """
    return ceil_days_between(now, date_to_utc_datetime(expiry))


class ExpiryQuery:
    """Finds certificates and service IDs expiring within lookahead_days.

    Args:
        certificate_repo: Source of certificate rows
        service_id_repo: Source of service ID rows
        lookahead_days: Size of the window, in days
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        certificate_repo: CertificateRepository,
        service_id_repo: ServiceIdRepository,
        lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
        clock: Callable[[], datetime] = utc_now,
    ):
        if lookahead_days < 1:
            raise ValueError(f"lookahead_days must be positive, got: {lookahead_days}")
        self.certificate_repo = certificate_repo
        self.service_id_repo = service_id_repo
        self.lookahead_days = lookahead_days
        self.clock = clock

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.lookahead_days)

    def get_expiring_certificates(self, now: Optional[datetime] = None) -> List[ExpiringItem]:
        """Certificates with now < valid_to <= now + window, soft-deleted ones excluded."""
        now = self._now(now)
        certificates = self.certificate_repo.get_expiring(now, now + self.window)
        return [self._from_certificate(cert, now) for cert in certificates]

    def get_expiring_service_ids(
        self, now: Optional[datetime] = None, include_unassigned: bool = False
    ) -> List[ExpiringItem]:
        """Service IDs with today < exp_date <= (now + window).date().

        Unless include_unassigned is set, service IDs without a renewing
        team are left out since nobody could be notified about them.
        """
        now = self._now(now)
        service_ids = self.service_id_repo.get_expiring(
            now.date(), (now + self.window).date(), include_unassigned=include_unassigned
        )
        return [self._from_service_id(svc, now) for svc in service_ids]

    def get_expiring_items(
        self, now: Optional[datetime] = None, include_unassigned: bool = False
    ) -> List[ExpiringItem]:
        """Certificates first, then service IDs, evaluated against one instant."""
        now = self._now(now)
        certificates = self.get_expiring_certificates(now)
        service_ids = self.get_expiring_service_ids(now, include_unassigned=include_unassigned)

        logger.info(
            f"Found {len(certificates)} certificate(s) and {len(service_ids)} service ID(s) "
            f"expiring within {self.lookahead_days} days",
            extra={
                "event": "expiry_query.completed",
                "certificate_count": len(certificates),
                "service_id_count": len(service_ids),
                "lookahead_days": self.lookahead_days,
            },
        )
        return certificates + service_ids

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else ensure_utc(self.clock())

    @staticmethod
    def _from_certificate(cert: Certificate, now: datetime) -> ExpiringItem:
        return ExpiringItem(
            id=cert.id,
            name=cert.common_name,
            type=ItemType.CERTIFICATE,
            expiry_date=cert.valid_to,
            team_id=cert.team_id,
            days_remaining=compute_days_remaining(cert.valid_to, now),
        )

    @staticmethod
    def _from_service_id(svc: ServiceId, now: datetime) -> ExpiringItem:
        return ExpiringItem(
            id=svc.id,
            name=svc.svcid,
            type=ItemType.SERVICE_ID,
            expiry_date=date_to_utc_datetime(svc.exp_date),
            team_id=svc.renewing_team_id,
            days_remaining=compute_days_remaining(svc.exp_date, now),
        )
