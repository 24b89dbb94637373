"""Shared fixtures: an in-memory database, seeded teams and items, a fixed clock."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from expiry_notifier.domain.models import Certificate, ServiceId, Team
from expiry_notifier.logging.context import clear_log_context
from expiry_notifier.persistence.database import close_database, get_session, init_database
from expiry_notifier.persistence.repositories import (
    CertificateRepository,
    NotificationHistoryRepository,
    ServiceIdRepository,
    TeamRepository,
)

# Mid-morning so that date-based and timestamp-based arithmetic differ
FIXED_NOW = datetime(2025, 6, 1, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def database():
    """Fresh in-memory database per test; get_session() works against it."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def session(database):
    with get_session() as s:
        yield s


@pytest.fixture
def team():
    return Team(
        id="t1",
        team_name="Payments Platform",
        alert1="a@x.com,b@x.com",
        alert2="lead@x.com",
        alert3="team@x.com",
        escalation="director@x.com",
    )


@pytest.fixture
def seeded(database, team, now):
    """One team, certificates at 30/45 days and a deleted one, service IDs at 7 days."""
    with get_session() as s:
        TeamRepository(s).add(team)
        certs = CertificateRepository(s)
        certs.add(Certificate(id="c1", common_name="example.com", team_id="t1", valid_to=now + timedelta(days=30)))
        certs.add(Certificate(id="c2", common_name="shop.acme.io", team_id="t1", valid_to=now + timedelta(days=45)))
        certs.add(
            Certificate(
                id="c3",
                common_name="old.acme.io",
                team_id="t1",
                valid_to=now + timedelta(days=7),
                deleted_at=now - timedelta(days=1),
            )
        )
        svc = ServiceIdRepository(s)
        svc.add(ServiceId(id="s1", svcid="svc-batch", exp_date=(now + timedelta(days=7)).date(), renewing_team_id="t1"))
        svc.add(ServiceId(id="s2", svcid="svc-orphan", exp_date=(now + timedelta(days=15)).date()))
    return now


@pytest.fixture
def history_repo(session):
    return NotificationHistoryRepository(session)


@pytest.fixture
def mock_smtp():
    """Stand-in for SMTPClient; send() succeeds unless a side_effect is set."""
    smtp = MagicMock()
    smtp.check_connection.return_value = True
    return smtp
