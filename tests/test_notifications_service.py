"""Unit tests for the notification dispatcher.

Runs the per-item state machine against a real in-memory history table
and team table, with the SMTP transport mocked:
- Threshold exactness
- Idempotence (existing success record)
- No-contacts path
- Multi-recipient fan-out
- Send failure recording and propagation
- Late duplicate detection via the unique index
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, Mock

import pytest
from sqlalchemy import select

from expiry_notifier.config.models import NotificationsConfig
from expiry_notifier.contacts.resolver import ContactResolver
from expiry_notifier.domain.models import (
    ExpiringItem,
    ItemType,
    NotificationRecord,
    NotificationStatus,
    Team,
    TriggeredBy,
)
from expiry_notifier.notifications.models import (
    NotificationDeliveryError,
    NotificationTemplateError,
    OutcomeStatus,
    SMTPConfigurationError,
    SMTPDeliveryError,
)
from expiry_notifier.notifications.service import (
    NO_CONTACTS_MESSAGE,
    TEST_EMAIL_SUBJECT,
    NotificationDispatcher,
)
from expiry_notifier.persistence.exceptions import DataIntegrityError
from expiry_notifier.persistence.repositories import NotificationHistoryRepository, TeamRepository
from expiry_notifier.persistence.schema import NotificationHistoryModel

NOW = datetime(2025, 6, 1, 9, 30, tzinfo=timezone.utc)


def make_item(days=30, item_id="c1", item_type=ItemType.CERTIFICATE, team_id="t1", name="example.com"):
    return ExpiringItem(
        id=item_id,
        name=name,
        type=item_type,
        expiry_date=NOW + timedelta(days=days),
        team_id=team_id,
        days_remaining=days,
    )


@pytest.fixture
def resolver(session, team):
    TeamRepository(session).add(team)
    return ContactResolver(TeamRepository(session))


@pytest.fixture
def dispatcher(mock_smtp):
    return NotificationDispatcher(mock_smtp)


def history_rows(session):
    return session.execute(select(NotificationHistoryModel)).scalars().all()


class TestThresholdMatch:
    @pytest.mark.parametrize("days", [89, 45, 29, 14, 2, 0])
    def test_non_trigger_day_is_skipped(self, dispatcher, history_repo, resolver, session, mock_smtp, days):
        outcome = dispatcher.process_item(make_item(days), TriggeredBy.SYSTEM, history_repo, resolver)

        assert outcome.status == OutcomeStatus.SKIPPED_NO_THRESHOLD
        assert history_rows(session) == []
        mock_smtp.send.assert_not_called()

    @pytest.mark.parametrize("days", [90, 60, 30, 15, 7, 1])
    def test_every_trigger_day_sends(self, dispatcher, history_repo, resolver, days):
        outcome = dispatcher.process_item(make_item(days), TriggeredBy.SYSTEM, history_repo, resolver)
        assert outcome.status == OutcomeStatus.SENT

    def test_custom_trigger_days(self, mock_smtp, history_repo, resolver):
        dispatcher = NotificationDispatcher(mock_smtp, NotificationsConfig(trigger_days=[45]))

        assert dispatcher.process_item(make_item(45), "system", history_repo, resolver).status == OutcomeStatus.SENT
        assert dispatcher.process_item(make_item(30), "system", history_repo, resolver).status == (
            OutcomeStatus.SKIPPED_NO_THRESHOLD
        )


class TestIdempotence:
    def test_existing_success_skips(self, dispatcher, history_repo, resolver, session, mock_smtp):
        history_repo.record(
            NotificationRecord(
                item_id="c1",
                item_type=ItemType.CERTIFICATE,
                item_name="example.com",
                days_until_expiry=30,
                recipients=["lead@x.com"],
                status=NotificationStatus.SUCCESS,
            )
        )

        outcome = dispatcher.process_item(make_item(30), TriggeredBy.SYSTEM, history_repo, resolver)

        assert outcome.status == OutcomeStatus.SKIPPED_ALREADY_SENT
        assert len(history_rows(session)) == 1
        mock_smtp.send.assert_not_called()

    def test_second_run_is_skipped(self, dispatcher, history_repo, resolver, session, mock_smtp):
        first = dispatcher.process_item(make_item(30), TriggeredBy.SYSTEM, history_repo, resolver)
        second = dispatcher.process_item(make_item(30), TriggeredBy.ADMIN, history_repo, resolver)

        assert first.status == OutcomeStatus.SENT
        assert second.status == OutcomeStatus.SKIPPED_ALREADY_SENT
        assert len(history_rows(session)) == 1
        assert mock_smtp.send.call_count == 1

    def test_failed_record_does_not_block_retry(self, dispatcher, history_repo, resolver, session):
        history_repo.record(
            NotificationRecord(
                item_id="c1",
                item_type=ItemType.CERTIFICATE,
                item_name="example.com",
                days_until_expiry=30,
                status=NotificationStatus.FAILED,
                error_message="earlier outage",
            )
        )

        outcome = dispatcher.process_item(make_item(30), TriggeredBy.SYSTEM, history_repo, resolver)

        assert outcome.status == OutcomeStatus.SENT
        assert sorted(row.status for row in history_rows(session)) == ["failed", "success"]

    def test_other_threshold_is_independent(self, dispatcher, history_repo, resolver):
        dispatcher.process_item(make_item(30), TriggeredBy.SYSTEM, history_repo, resolver)

        outcome = dispatcher.process_item(make_item(15), TriggeredBy.SYSTEM, history_repo, resolver)

        assert outcome.status == OutcomeStatus.SENT

    def test_concurrent_success_detected_late(self, dispatcher, resolver, mock_smtp):
        history_repo = MagicMock(spec=NotificationHistoryRepository)
        history_repo.exists.return_value = False
        history_repo.record.side_effect = DataIntegrityError("duplicate")

        outcome = dispatcher.process_item(make_item(30), TriggeredBy.SYSTEM, history_repo, resolver)

        assert outcome.status == OutcomeStatus.SKIPPED_ALREADY_SENT
        assert outcome.recipients == ["lead@x.com"]
        mock_smtp.send.assert_called_once()


class TestNoContacts:
    def test_empty_tier_records_failure_without_sending(self, mock_smtp, history_repo, session):
        TeamRepository(session).add(Team(id="t2", team_name="Quiet", alert1="a@x.com"))
        dispatcher = NotificationDispatcher(mock_smtp)

        outcome = dispatcher.process_item(
            make_item(7, team_id="t2"), TriggeredBy.SYSTEM, history_repo, ContactResolver(TeamRepository(session))
        )

        assert outcome.status == OutcomeStatus.FAILED_NO_CONTACTS
        assert outcome.error == NO_CONTACTS_MESSAGE
        mock_smtp.send.assert_not_called()

        [row] = history_rows(session)
        assert row.status == "failed"
        assert row.recipients == "[]"
        assert row.error_message == "No contacts found for team"
        assert row.days_until_expiry == "7"

    def test_unknown_team(self, dispatcher, history_repo, resolver, mock_smtp):
        outcome = dispatcher.process_item(make_item(30, team_id="ghost"), TriggeredBy.SYSTEM, history_repo, resolver)

        assert outcome.status == OutcomeStatus.FAILED_NO_CONTACTS
        mock_smtp.send.assert_not_called()

    def test_no_contacts_retried_next_run(self, dispatcher, history_repo, session, mock_smtp):
        TeamRepository(session).add(Team(id="t2", team_name="Quiet"))
        resolver = ContactResolver(TeamRepository(session))

        dispatcher.process_item(make_item(7, team_id="t2"), TriggeredBy.SYSTEM, history_repo, resolver)
        second = dispatcher.process_item(make_item(7, team_id="t2"), TriggeredBy.SYSTEM, history_repo, resolver)

        assert second.status == OutcomeStatus.FAILED_NO_CONTACTS
        assert len(history_rows(session)) == 2


class TestFanOut:
    def test_three_recipients_three_sends_one_record(self, mock_smtp, history_repo, session):
        TeamRepository(session).add(
            Team(id="t3", team_name="Trio", alert2="one@x.com, two@x.com ,three@x.com")
        )
        resolver = ContactResolver(TeamRepository(session))
        records_at_send_time = []
        mock_smtp.send.side_effect = lambda *args, **kwargs: records_at_send_time.append(len(history_rows(session)))
        dispatcher = NotificationDispatcher(mock_smtp)

        outcome = dispatcher.process_item(make_item(30, team_id="t3"), TriggeredBy.ADMIN, history_repo, resolver)

        assert outcome.status == OutcomeStatus.SENT
        assert [c.args[0] for c in mock_smtp.send.call_args_list] == ["one@x.com", "two@x.com", "three@x.com"]
        # Nothing is written until every send has gone out
        assert records_at_send_time == [0, 0, 0]

        [row] = history_rows(session)
        assert row.status == "success"
        assert row.recipients == '["one@x.com","two@x.com","three@x.com"]'
        assert row.triggered_by == "admin"

    def test_each_send_gets_rendered_content(self, dispatcher, history_repo, resolver, mock_smtp):
        dispatcher.process_item(make_item(15), TriggeredBy.SYSTEM, history_repo, resolver)

        to, subject, html, text = mock_smtp.send.call_args_list[0].args
        assert to == "a@x.com"
        assert subject == "Certificate Expiry Alert: example.com"
        assert "example.com" in html
        assert "15 days" in text
        assert "Team:           Payments Platform" in text
        assert "Payments Platform" in html

    def test_subject_prefix(self, mock_smtp, history_repo, resolver):
        dispatcher = NotificationDispatcher(mock_smtp, subject_prefix="[PKI]")

        dispatcher.process_item(make_item(60, item_type=ItemType.SERVICE_ID, name="svc-batch"), "system", history_repo, resolver)

        assert mock_smtp.send.call_args.args[1] == "[PKI] Service ID Expiry Alert: svc-batch"


class TestSendFailure:
    def test_failure_recorded_then_raised(self, dispatcher, history_repo, resolver, session, mock_smtp):
        mock_smtp.send.side_effect = [None, SMTPDeliveryError("mailbox full")]

        with pytest.raises(NotificationDeliveryError) as exc_info:
            dispatcher.process_item(make_item(15), TriggeredBy.SYSTEM, history_repo, resolver)

        assert isinstance(exc_info.value.__cause__, SMTPDeliveryError)
        assert exc_info.value.item_id == "c1"
        assert exc_info.value.days_until_expiry == 15
        assert exc_info.value.recipients == ["a@x.com", "b@x.com"]

        [row] = history_rows(session)
        assert row.status == "failed"
        assert row.error_message == "mailbox full"
        assert row.recipients == '["a@x.com","b@x.com"]'

    def test_missing_smtp_host_recorded(self, dispatcher, history_repo, resolver, session, mock_smtp):
        mock_smtp.send.side_effect = SMTPConfigurationError("SMTP configuration is missing")

        with pytest.raises(NotificationDeliveryError):
            dispatcher.process_item(make_item(30), TriggeredBy.SYSTEM, history_repo, resolver)

        [row] = history_rows(session)
        assert row.status == "failed"
        assert "SMTP configuration is missing" in row.error_message

    def test_template_failure_recorded(self, mock_smtp, history_repo, resolver, session):
        renderer = Mock()
        renderer.render.side_effect = NotificationTemplateError("bad template")
        dispatcher = NotificationDispatcher(mock_smtp, template_renderer=renderer)

        with pytest.raises(NotificationDeliveryError):
            dispatcher.process_item(make_item(30), TriggeredBy.SYSTEM, history_repo, resolver)

        mock_smtp.send.assert_not_called()
        assert history_rows(session)[0].error_message == "bad template"


class TestSendTestEmail:
    def test_sends_fixed_message(self, dispatcher, mock_smtp):
        dispatcher.send_test_email("ops@x.com")

        to, subject, html, text = mock_smtp.send.call_args.args
        assert to == "ops@x.com"
        assert subject == TEST_EMAIL_SUBJECT
        assert "Test Email" in html

    def test_transport_error_propagates(self, dispatcher, mock_smtp):
        mock_smtp.send.side_effect = SMTPDeliveryError("down")

        with pytest.raises(SMTPDeliveryError):
            dispatcher.send_test_email("ops@x.com")
