"""Main entry point for the Expiry Notifier service.

Modes:
    expiry-notifier                 background scheduler only (daemon)
    expiry-notifier --serve         HTTP API plus background scheduler
    expiry-notifier --manual-run    one check with triggered_by=admin, then exit
"""

import argparse
import signal
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import uvicorn
from dotenv import load_dotenv

from expiry_notifier.config.environment import EnvironmentConfig
from expiry_notifier.config.exceptions import ConfigurationError
from expiry_notifier.config.loader import load_config
from expiry_notifier.config.models import AppConfig
from expiry_notifier.domain.models import TriggeredBy
from expiry_notifier.logging import configure_logging, get_logger
from expiry_notifier.notifications.service import NotificationDispatcher
from expiry_notifier.notifications.smtp_client import SMTPClient
from expiry_notifier.persistence.database import close_database, init_database
from expiry_notifier.pipeline import CheckRunResult, ExpiryCheckRunner
from expiry_notifier.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")


@dataclass
class Services:
    """Long-lived collaborators shared by every entry mode."""

    smtp_client: SMTPClient
    dispatcher: NotificationDispatcher
    runner: ExpiryCheckRunner


def build_services(app_config: AppConfig, env_config: EnvironmentConfig) -> Services:
    smtp_client = SMTPClient(env_config, app_config.email)
    dispatcher = NotificationDispatcher(
        smtp_client,
        notifications_config=app_config.notifications,
        subject_prefix=app_config.email.subject_prefix,
    )
    runner = ExpiryCheckRunner(app_config, dispatcher)
    return Services(smtp_client=smtp_client, dispatcher=dispatcher, runner=runner)


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """Load configuration and settle the effective log level.

    Priority: --log-level, then LOG_LEVEL, then logging.level in config.yaml.
    """
    app_config, env_config = load_config(config_path)
    env_config.log_level = (
        log_level_override or env_config.log_level or app_config.logging.level or "INFO"
    )
    return app_config, env_config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="expiry-notifier",
        description="Expiry Notifier - emails teams as certificates and service IDs approach expiry",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present, else built-in defaults)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single check immediately and exit (exit code 1 if any send failed)",
    )
    mode.add_argument(
        "--serve",
        action="store_true",
        help="Serve the HTTP API with the background scheduler",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    return parser.parse_args(argv)


def run_manual_check(runner: ExpiryCheckRunner) -> CheckRunResult:
    logger.info("Executing manual expiry check", extra={"event": "service.manual_check.starting"})
    result = runner.check_and_send_notifications(TriggeredBy.ADMIN)
    logger.info(
        f"Manual check completed: {result.total_items} item(s), "
        f"{result.sent_count} sent, {result.failed_count} failed",
        extra={
            "event": "service.manual_check.completed",
            "duration_seconds": round(result.duration_seconds, 3),
            "degraded": result.degraded,
            "counts": result.to_dict()["counts"],
        },
    )
    return result


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the Expiry Notifier.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    load_dotenv()
    start_time = time.time()
    args = parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        logger.info(
            "Expiry Notifier starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
                "serve": args.serve,
                "smtp_configured": env_config.smtp_configured,
            },
        )
        if not env_config.smtp_configured:
            logger.warning(
                "SMTP_HOST is not set; notifications will be recorded as failed",
                extra={"event": "config.smtp_missing"},
            )

        init_database(env_config.database_url)
        services = build_services(app_config, env_config)

        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "check_interval_seconds": app_config.check_interval_seconds,
                "lookahead_days": app_config.notifications.lookahead_days,
                "trigger_days": app_config.notifications.trigger_days,
            },
        )

        if args.manual_run:
            try:
                result = run_manual_check(services.runner)
            finally:
                close_database()
                _log_stopped(start_time)
            return 1 if result.degraded else 0

        scheduler_service = SchedulerService(
            check_callable=services.runner.run_once,
            interval_seconds=app_config.check_interval_seconds,
        )

        if args.serve:
            from expiry_notifier.api import create_app

            app = create_app(
                runner=services.runner,
                dispatcher=services.dispatcher,
                smtp_client=services.smtp_client,
                env_config=env_config,
                scheduler_service=scheduler_service,
            )
            try:
                uvicorn.run(app, host=app_config.api.host, port=app_config.api.port, log_config=None)
            finally:
                close_database()
                _log_stopped(start_time)
            return 0

        return _run_daemon(scheduler_service, start_time)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e.message}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1


def _run_daemon(scheduler_service: SchedulerService, start_time: float) -> int:
    shutdown_event = threading.Event()
    scheduler_service.shutdown_event = shutdown_event

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        scheduler_service.shutdown(wait=False)
    finally:
        close_database()
        _log_stopped(start_time)
    return 0


def _log_stopped(start_time: float) -> None:
    logger.info(
        "Expiry Notifier stopped",
        extra={
            "event": "service.stopping",
            "uptime_seconds": round(time.time() - start_time, 2),
        },
    )


if __name__ == "__main__":
    sys.exit(main())
