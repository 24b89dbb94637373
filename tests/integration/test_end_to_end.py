"""End-to-end tests for the expiry check.

Runs the real runner, dispatcher, repositories and templates against an
in-memory (or temporary file) SQLite database. Only the SMTP transport is
replaced, by RecordingSMTPClient.

- The 30-day certificate scenario with two recipients
- Deduplication across consecutive runs
- A mixed inventory loaded from fixtures
- CLI manual mode against a database file
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select

from expiry_notifier.config.models import AppConfig
from expiry_notifier.domain.models import Certificate, Team
from expiry_notifier.main import main
from expiry_notifier.notifications.models import OutcomeStatus
from expiry_notifier.notifications.service import NotificationDispatcher
from expiry_notifier.persistence.database import close_database, get_session, init_database
from expiry_notifier.persistence.repositories import CertificateRepository, TeamRepository
from expiry_notifier.persistence.schema import NotificationHistoryModel
from expiry_notifier.pipeline import ExpiryCheckRunner
from expiry_notifier.utils.timestamps import utc_now
from tests.helpers import RecordingSMTPClient, seed_inventory


def all_history():
    with get_session() as s:
        rows = s.execute(select(NotificationHistoryModel)).scalars().all()
        return [
            {
                "item_id": row.item_id,
                "days_until_expiry": row.days_until_expiry,
                "recipients": row.recipients,
                "status": row.status,
                "error_message": row.error_message,
            }
            for row in rows
        ]


@pytest.fixture
def smtp():
    return RecordingSMTPClient()


@pytest.fixture
def runner(smtp, clock):
    return ExpiryCheckRunner(AppConfig(), NotificationDispatcher(smtp), clock=clock)


class TestThirtyDayCertificate:
    @pytest.fixture(autouse=True)
    def scenario(self, database, now):
        with get_session() as s:
            TeamRepository(s).add(Team(id="t1", team_name="Web", alert1="a@x.com,b@x.com", alert2="a@x.com,b@x.com"))
            CertificateRepository(s).add(
                Certificate(id="c1", common_name="example.com", team_id="t1", valid_to=now + timedelta(days=30))
            )

    def test_two_sends_one_success_record(self, runner, smtp):
        result = runner.check_and_send_notifications()

        [outcome] = result.outcomes
        assert outcome.status == OutcomeStatus.SENT
        assert smtp.recipients == ["a@x.com", "b@x.com"]
        assert {message["subject"] for message in smtp.sent} == {"Certificate Expiry Alert: example.com"}
        assert "example.com" in smtp.sent[0]["html"]
        assert "30 days" in smtp.sent[0]["text"]

        assert all_history() == [
            {
                "item_id": "c1",
                "days_until_expiry": "30",
                "recipients": '["a@x.com","b@x.com"]',
                "status": "success",
                "error_message": None,
            }
        ]

    def test_second_run_is_deduplicated(self, runner, smtp):
        runner.check_and_send_notifications()
        second = runner.check_and_send_notifications()

        assert second.outcomes[0].status == OutcomeStatus.SKIPPED_ALREADY_SENT
        assert len(smtp.sent) == 2
        assert len(all_history()) == 1

    def test_one_failed_recipient_records_failure(self, clock):
        smtp = RecordingSMTPClient(fail_for=["b@x.com"])
        runner = ExpiryCheckRunner(AppConfig(), NotificationDispatcher(smtp), clock=clock)

        result = runner.check_and_send_notifications()

        assert result.outcomes[0].status == OutcomeStatus.FAILED_SEND_ERROR
        assert result.degraded is True
        [record] = all_history()
        assert record["status"] == "failed"
        assert record["error_message"] == "Connection refused for b@x.com"

    def test_next_day_is_not_a_trigger(self, smtp, now):
        runner = ExpiryCheckRunner(AppConfig(), NotificationDispatcher(smtp), clock=lambda: now + timedelta(days=1))

        result = runner.check_and_send_notifications()

        assert result.outcomes[0].days_remaining == 29
        assert result.outcomes[0].status == OutcomeStatus.SKIPPED_NO_THRESHOLD
        assert smtp.sent == []


class TestFixtureInventory:
    @pytest.fixture(autouse=True)
    def inventory(self, database, now):
        with get_session() as s:
            counts = seed_inventory(s, now)
        assert counts == {"teams": 2, "certificates": 4, "service_ids": 3}

    def test_mixed_inventory(self, runner, smtp):
        result = runner.check_and_send_notifications()

        statuses = {outcome.item_id: outcome.status for outcome in result.outcomes}
        assert statuses == {
            "c-api": OutcomeStatus.SENT,
            "c-checkout": OutcomeStatus.SKIPPED_NO_THRESHOLD,
            "c-sso": OutcomeStatus.SENT,
            "s-batch": OutcomeStatus.SENT,
            "s-ldap": OutcomeStatus.FAILED_NO_CONTACTS,
        }
        assert sorted(smtp.recipients) == ["director@acme.io", "identity@acme.io", "leads@acme.io"]
        assert result.degraded is False

        batch = next(m for m in smtp.sent if m["to"] == "director@acme.io")
        assert batch["subject"] == "Service ID Expiry Alert: svc-batch-settlement"
        assert "IMMEDIATE ACTION REQUIRED" in batch["text"]

        failed = [r for r in all_history() if r["status"] == "failed"]
        assert failed == [
            {
                "item_id": "s-ldap",
                "days_until_expiry": "30",
                "recipients": "[]",
                "status": "failed",
                "error_message": "No contacts found for team",
            }
        ]

    def test_upcoming_lists_orphaned_service_id(self, runner):
        upcoming = {entry["id"]: entry for entry in runner.get_upcoming()}

        assert "s-orphan" in upcoming
        assert "c-legacy" not in upcoming
        assert upcoming["s-orphan"]["next_notification_day"] == 15


def test_cli_manual_run(tmp_path, monkeypatch):
    now = utc_now()
    db_url = f"sqlite:///{tmp_path / 'notifier.db'}"
    init_database(db_url)
    with get_session() as s:
        seed_inventory(s, now)
    close_database()

    config_path = tmp_path / "config.yaml"
    config_path.write_text("check_interval: 1h\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("SMTP_HOST", "smtp.acme.io")

    smtp = RecordingSMTPClient()
    with patch("expiry_notifier.main.SMTPClient", return_value=smtp), patch(
        "expiry_notifier.main.configure_logging"
    ), patch("expiry_notifier.main.load_dotenv"):
        exit_code = main(["--manual-run", "--config", str(config_path)])

    assert exit_code == 0
    assert len(smtp.sent) == 3

    init_database(db_url)
    try:
        history = all_history()
    finally:
        close_database()
    assert {(r["item_id"], r["status"]) for r in history} == {
        ("c-api", "success"),
        ("c-sso", "success"),
        ("s-batch", "success"),
        ("s-ldap", "failed"),
    }
