"""Scoped context fields for structured logging.

Fields pushed here (run_id, item_id, item_type, ...) are copied onto every
log record emitted inside the scope by ContextualFilter. Backed by
contextvars, so each thread and each asyncio task sees its own stack.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Dict, Iterator

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("expiry_notifier_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields active in the current scope."""
    return dict(_LOG_CONTEXT.get())


def push_log_context(**fields: Any) -> Token:
    """Merge fields into the current context; undo with pop_log_context()."""
    return _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **fields})


def pop_log_context(token: Token) -> None:
    """Restore the context captured by push_log_context()."""
    _LOG_CONTEXT.reset(token)


def clear_log_context() -> None:
    """Drop every context field. Used by tests."""
    _LOG_CONTEXT.set({})


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Add fields to every log record emitted inside the block.

    Example:
        >>> with log_context(run_id="3f2a", triggered_by="system"):
        ...     logger.info("Check started", extra={"event": "expiry_check.run.started"})
    """
    token = push_log_context(**fields)
    try:
        yield get_log_context()
    finally:
        pop_log_context(token)
