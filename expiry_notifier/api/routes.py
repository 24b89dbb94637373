"""HTTP routes for triggering checks and inspecting notification state."""

from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from expiry_notifier.config.environment import EnvironmentConfig
from expiry_notifier.domain.models import NotificationRecord, TriggeredBy
from expiry_notifier.logging import get_logger
from expiry_notifier.notifications.service import NotificationDispatcher
from expiry_notifier.notifications.smtp_client import SMTPClient, parse_recipients
from expiry_notifier.pipeline.runner import ExpiryCheckRunner
from expiry_notifier.scheduler.service import SchedulerService
from expiry_notifier.utils.timestamps import format_timestamp

from .dependencies import (
    get_db_check,
    get_dispatcher,
    get_env_config,
    get_runner,
    get_scheduler_service,
    get_smtp_client,
)

logger = get_logger(__name__, component="api")

router = APIRouter()

CHECK_IN_PROGRESS_MESSAGE = "check already in progress"


class EmailProbeRequest(BaseModel):
    """Body of POST /api/admin/test-email; to defaults to SMTP_USER."""

    to: Optional[str] = None


def serialize_history_record(record: NotificationRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "item_id": record.item_id,
        "item_type": record.item_type.value,
        "item_name": record.item_name,
        "team_id": record.team_id,
        "team_name": record.team_name,
        "days_until_expiry": str(record.days_until_expiry),
        "notification_type": record.notification_type,
        "recipients": list(record.recipients),
        "sent_at": format_timestamp(record.sent_at) if record.sent_at else None,
        "status": record.status.value,
        "error_message": record.error_message,
        "triggered_by": record.triggered_by.value,
    }


def _already_running() -> JSONResponse:
    logger.warning(
        "Check requested while another run holds the lock",
        extra={"event": "api.check.conflict"},
    )
    return JSONResponse(
        {"success": False, "error": CHECK_IN_PROGRESS_MESSAGE}, status_code=409
    )


@router.get("/api/notifications/check", tags=["notifications"])
def check_notifications(
    triggered_by: TriggeredBy = Query(TriggeredBy.SYSTEM),
    runner: ExpiryCheckRunner = Depends(get_runner),
):
    try:
        result = runner.check_and_send_notifications(triggered_by)
    except Exception as e:
        logger.error(
            f"Notification check failed: {e}",
            extra={"event": "api.check.failed", "error_type": type(e).__name__},
            exc_info=True,
        )
        return JSONResponse({"error": "Failed to check notifications"}, status_code=500)
    if result.skipped:
        return _already_running()
    return JSONResponse({"success": True, **result.to_dict()})


@router.get("/api/notifications/upcoming", tags=["notifications"])
def upcoming_notifications(runner: ExpiryCheckRunner = Depends(get_runner)):
    try:
        items = runner.get_upcoming()
    except Exception as e:
        logger.error(
            f"Failed to list upcoming notifications: {e}",
            extra={"event": "api.upcoming.failed", "error_type": type(e).__name__},
            exc_info=True,
        )
        return JSONResponse({"error": "Failed to fetch upcoming notifications"}, status_code=500)
    return JSONResponse({"items": items})


@router.post("/api/admin/notifications/trigger", tags=["admin"])
def trigger_notifications(runner: ExpiryCheckRunner = Depends(get_runner)):
    try:
        result = runner.check_and_send_notifications(TriggeredBy.ADMIN)
        if result.skipped:
            return _already_running()
        history = runner.get_history()
    except Exception as e:
        logger.error(
            f"Manual notification trigger failed: {e}",
            extra={"event": "api.trigger.failed", "error_type": type(e).__name__},
            exc_info=True,
        )
        return JSONResponse(
            {"success": False, "error": "Failed to trigger notifications"}, status_code=500
        )
    return JSONResponse(
        {
            "success": True,
            "result": result.to_dict(),
            "history": [serialize_history_record(r) for r in history],
        }
    )


@router.get("/api/admin/notifications/history", tags=["admin"])
def notification_history(runner: ExpiryCheckRunner = Depends(get_runner)):
    try:
        history = runner.get_history()
    except Exception as e:
        logger.error(
            f"Failed to fetch notification history: {e}",
            extra={"event": "api.history.failed", "error_type": type(e).__name__},
            exc_info=True,
        )
        return JSONResponse({"error": "Failed to fetch notification history"}, status_code=500)
    return JSONResponse({"history": [serialize_history_record(r) for r in history]})


@router.post("/api/admin/test-email", tags=["admin"])
def send_test_email(
    body: Optional[EmailProbeRequest] = None,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    env_config: EnvironmentConfig = Depends(get_env_config),
):
    recipient = (body.to if body else None) or env_config.smtp_user
    if not recipient:
        return JSONResponse(
            {"success": False, "error": "No recipient given and SMTP_USER is not set"},
            status_code=400,
        )

    try:
        address = parse_recipients(recipient)[0]
    except ValueError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=400)

    try:
        dispatcher.send_test_email(address)
    except Exception as e:
        logger.error(
            f"Test email to {address} failed: {e}",
            extra={"event": "api.test_email.failed", "error_type": type(e).__name__},
        )
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)
    return JSONResponse({"success": True, "message": f"Test email sent to {address}"})


@router.get("/api/admin/check-email", tags=["admin"])
def check_email(smtp_client: SMTPClient = Depends(get_smtp_client)):
    return JSONResponse({"status": "up" if smtp_client.check_connection() else "down"})


@router.get("/api/admin/check-db", tags=["admin"])
def check_db(db_check: Callable[[], bool] = Depends(get_db_check)):
    return JSONResponse({"status": "up" if db_check() else "down"})


@router.get("/health", tags=["health"])
def health(
    db_check: Callable[[], bool] = Depends(get_db_check),
    scheduler_service: Optional[SchedulerService] = Depends(get_scheduler_service),
):
    database_up = db_check()
    body: Dict[str, Any] = {
        "status": "ok" if database_up else "degraded",
        "database": "up" if database_up else "down",
    }
    if scheduler_service is not None:
        next_run = scheduler_service.get_next_run_time()
        body["scheduler"] = {
            "running": scheduler_service.is_running(),
            "next_run_time": format_timestamp(next_run) if next_run else None,
        }
    return JSONResponse(body, status_code=200 if database_up else 503)
