"""Structured logging helpers.

Usage:
    logger = get_logger(__name__, component="dispatcher")
    logger.info("Notification sent", extra={"event": "notification.sent"})
"""

import logging
from typing import Optional, Union

from .config import (
    SERVICE_NAME,
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from .context import clear_log_context, get_log_context, log_context


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that adds a fixed component field without clobbering call extras."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Return a logger, wrapped so every record carries component= when given."""
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger


__all__ = [
    "SERVICE_NAME",
    "ComponentLoggerAdapter",
    "ContextualFilter",
    "JSONFormatter",
    "KeyValueFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "get_logger",
    "log_context",
]
