"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job registration with correct configuration
- Immediate first run (next_run_time set to now)
- Prevents overlapping runs (max_instances=1) and coalesces missed runs
- Start/shutdown lifecycle
- Trigger now functionality
- Job errors never stop the schedule
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, Mock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from expiry_notifier.scheduler import JOB_ID, SchedulerService


@pytest.fixture
def mock_scheduler():
    scheduler = MagicMock()
    scheduler.running = False
    return scheduler


class TestSchedulerService:
    """Test suite for SchedulerService."""

    def test_initialization(self):
        check = Mock()
        shutdown_event = threading.Event()

        service = SchedulerService(check_callable=check, interval_seconds=60, shutdown_event=shutdown_event)

        assert service.interval_seconds == 60
        assert service.check_callable is check
        assert service.shutdown_event is shutdown_event
        assert not service.is_running()

    @pytest.mark.parametrize("interval", [0, -5])
    def test_invalid_interval(self, interval):
        with pytest.raises(ValueError, match="must be positive"):
            SchedulerService(check_callable=Mock(), interval_seconds=interval)

    def test_start_registers_job(self, mock_scheduler):
        service = SchedulerService(check_callable=Mock(), interval_seconds=3600, scheduler=mock_scheduler)
        before = datetime.now(timezone.utc)

        service.start()

        mock_scheduler.add_job.assert_called_once()
        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == JOB_ID
        assert kwargs["func"] == service._run_job
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        assert kwargs["replace_existing"] is True
        assert isinstance(kwargs["trigger"], IntervalTrigger)
        assert kwargs["trigger"].interval == timedelta(seconds=3600)
        # First run is immediate
        assert before <= kwargs["next_run_time"] <= datetime.now(timezone.utc)
        mock_scheduler.start.assert_called_once()

    def test_shutdown_sets_event(self, mock_scheduler):
        shutdown_event = threading.Event()
        mock_scheduler.running = True
        service = SchedulerService(
            check_callable=Mock(), interval_seconds=60, scheduler=mock_scheduler, shutdown_event=shutdown_event
        )

        service.shutdown(wait=True)

        mock_scheduler.shutdown.assert_called_once_with(wait=True)
        assert shutdown_event.is_set()

    def test_shutdown_when_not_running(self, mock_scheduler):
        service = SchedulerService(check_callable=Mock(), interval_seconds=60, scheduler=mock_scheduler)

        service.shutdown()

        mock_scheduler.shutdown.assert_not_called()

    def test_trigger_now_returns_result(self):
        check = Mock(return_value="result")
        service = SchedulerService(check_callable=check, interval_seconds=60)

        assert service.trigger_now() == "result"
        check.assert_called_once_with()

    def test_trigger_now_propagates_errors(self):
        service = SchedulerService(check_callable=Mock(side_effect=RuntimeError("boom")), interval_seconds=60)

        with pytest.raises(RuntimeError):
            service.trigger_now()

    def test_run_job_swallows_errors(self, caplog):
        check = Mock(side_effect=RuntimeError("database locked"))
        service = SchedulerService(check_callable=check, interval_seconds=60)

        service._run_job()

        check.assert_called_once()
        assert "Scheduled expiry check failed: database locked" in caplog.text

    def test_next_run_time(self, mock_scheduler):
        job = Mock(next_run_time=datetime(2025, 6, 1, tzinfo=timezone.utc))
        mock_scheduler.get_job.return_value = job
        service = SchedulerService(check_callable=Mock(), interval_seconds=60, scheduler=mock_scheduler)

        assert service.get_next_run_time() == job.next_run_time
        mock_scheduler.get_job.assert_called_with(JOB_ID)

        mock_scheduler.get_job.return_value = None
        assert service.get_next_run_time() is None


class TestSchedulerLifecycle:
    """Runs a real BackgroundScheduler briefly."""

    def test_first_run_is_immediate(self):
        ran = threading.Event()
        service = SchedulerService(check_callable=ran.set, interval_seconds=3600)

        service.start()
        try:
            assert service.is_running()
            assert ran.wait(timeout=5)
            assert service.get_next_run_time() is not None
        finally:
            service.shutdown(wait=True)

        assert not service.is_running()

    def test_errors_do_not_stop_schedule(self):
        calls = []

        def failing_check():
            calls.append(time.monotonic())
            raise RuntimeError("boom")

        service = SchedulerService(check_callable=failing_check, interval_seconds=1)
        service.start()
        try:
            deadline = time.monotonic() + 5
            while len(calls) < 2 and time.monotonic() < deadline:
                time.sleep(0.05)
        finally:
            service.shutdown(wait=True)

        assert len(calls) >= 2
