"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from expiry_notifier import __version__
from expiry_notifier.config.environment import EnvironmentConfig
from expiry_notifier.logging import get_logger
from expiry_notifier.notifications.service import NotificationDispatcher
from expiry_notifier.notifications.smtp_client import SMTPClient
from expiry_notifier.persistence.database import check_database
from expiry_notifier.pipeline.runner import ExpiryCheckRunner
from expiry_notifier.scheduler.service import SchedulerService

from .routes import router

logger = get_logger(__name__, component="api")


def create_app(
    runner: ExpiryCheckRunner,
    dispatcher: NotificationDispatcher,
    smtp_client: SMTPClient,
    env_config: EnvironmentConfig,
    scheduler_service: Optional[SchedulerService] = None,
    db_check: Callable[[], bool] = check_database,
) -> FastAPI:
    """Build the HTTP app around already-constructed services.

    When scheduler_service is given it is started with the app and shut
    down with it, so the background check runs alongside the API.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler_service is not None:
            scheduler_service.start()
        logger.info("HTTP API started", extra={"event": "api.started"})
        try:
            yield
        finally:
            if scheduler_service is not None:
                scheduler_service.shutdown(wait=False)
            logger.info("HTTP API stopped", extra={"event": "api.stopped"})

    app = FastAPI(title="Expiry Notifier", version=__version__, lifespan=lifespan)
    app.state.runner = runner
    app.state.dispatcher = dispatcher
    app.state.smtp_client = smtp_client
    app.state.env_config = env_config
    app.state.db_check = db_check
    app.state.scheduler_service = scheduler_service
    app.include_router(router)
    return app
