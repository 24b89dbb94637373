"""Persistence layer: engine/session lifecycle, repositories, and errors.

Example usage:
    >>> from expiry_notifier.persistence import init_database, get_session
    >>> from expiry_notifier.persistence import NotificationHistoryRepository
    >>>
    >>> init_database("sqlite:///./data/expiry_notifier.db")
    >>> with get_session() as session:
    ...     recent = NotificationHistoryRepository(session).list_recent(limit=10)
"""

from .database import check_database, close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    CertificateRepository,
    NotificationHistoryRepository,
    ServiceIdRepository,
    TeamRepository,
)

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "get_engine",
    "check_database",
    "close_database",
    # Repositories
    "TeamRepository",
    "CertificateRepository",
    "ServiceIdRepository",
    "NotificationHistoryRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
