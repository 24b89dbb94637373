"""Database engine and session lifecycle.

One engine and one session factory per process, created by init_database()
at startup and disposed by close_database() at shutdown.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from expiry_notifier.logging import get_logger

from .exceptions import DatabaseConnectionError

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None

logger = get_logger(__name__, component="database")


def init_database(database_url: str) -> Engine:
    """Create the engine, verify connectivity, and create missing tables.

    In-memory SQLite URLs ("sqlite://", "sqlite:///:memory:") share a single
    connection across threads so the scheduler thread, the HTTP workers and
    tests all see the same data.

    Args:
        database_url: SQLAlchemy URL, e.g. "sqlite:///./data/expiry_notifier.db"

    Returns:
        The initialised engine

    Raises:
        DatabaseConnectionError: If the URL is invalid or the database is unreachable
    """
    global _engine, _session_factory

    if not database_url or not isinstance(database_url, str):
        raise DatabaseConnectionError("Database URL must be a non-empty string")

    try:
        url = make_url(database_url)
    except ArgumentError as e:
        raise DatabaseConnectionError(f"Invalid database URL: {e}") from e

    safe_url = url.render_as_string(hide_password=True)
    logger.info(
        "Initializing database",
        extra={"event": "database.initializing", "database_url": safe_url},
    )

    is_sqlite = url.get_backend_name() == "sqlite"
    in_memory = is_sqlite and url.database in (None, "", ":memory:")

    engine_kwargs = {"pool_pre_ping": True}
    if is_sqlite:
        engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if in_memory:
            engine_kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    try:
        engine = create_engine(url, **engine_kwargs)
        if is_sqlite:
            _configure_sqlite(engine, wal=not in_memory)

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        from .schema import create_schema

        create_schema(engine)
    except DatabaseConnectionError:
        raise
    except Exception as e:
        logger.error(
            f"Failed to initialize database: {e}",
            extra={"event": "database.init_failed", "database_url": safe_url},
            exc_info=True,
        )
        raise DatabaseConnectionError(f"Failed to initialize database: {e}") from e

    _engine = engine
    _session_factory = sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)

    logger.info(
        "Database initialized",
        extra={"event": "database.initialised", "database_url": safe_url},
    )
    return engine


def _configure_sqlite(engine: Engine, wal: bool) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Session scope: commit on success, roll back on error, always close.

    Raises:
        DatabaseConnectionError: If init_database() has not been called

    Example:
        >>> with get_session() as session:
        ...     NotificationHistoryRepository(session).list_recent(limit=10)
    """
    if _session_factory is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_session()"
        )

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(
            f"Database session rolled back: {e}",
            extra={"event": "database.session.rolled_back", "error_type": type(e).__name__},
        )
        raise
    finally:
        session.close()


def get_engine() -> Engine:
    """Return the process-wide engine.

    Raises:
        DatabaseConnectionError: If init_database() has not been called
    """
    if _engine is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_engine()"
        )
    return _engine


def check_database() -> bool:
    """Run a trivial query; True when the database answers."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(
            f"Database health check failed: {e}",
            extra={"event": "database.health_check.failed", "error_type": type(e).__name__},
        )
        return False
    return True


def close_database() -> None:
    """Dispose of the engine at shutdown. Safe to call more than once."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed", extra={"event": "database.closed"})
