"""Shared FastAPI dependencies: collaborators stored on app.state by create_app()."""

from typing import Callable, Optional

from fastapi import Request

from expiry_notifier.config.environment import EnvironmentConfig
from expiry_notifier.notifications.service import NotificationDispatcher
from expiry_notifier.notifications.smtp_client import SMTPClient
from expiry_notifier.pipeline.runner import ExpiryCheckRunner
from expiry_notifier.scheduler.service import SchedulerService


def get_runner(request: Request) -> ExpiryCheckRunner:
    return request.app.state.runner


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_smtp_client(request: Request) -> SMTPClient:
    return request.app.state.smtp_client


def get_env_config(request: Request) -> EnvironmentConfig:
    return request.app.state.env_config


def get_db_check(request: Request) -> Callable[[], bool]:
    return request.app.state.db_check


def get_scheduler_service(request: Request) -> Optional[SchedulerService]:
    return request.app.state.scheduler_service
