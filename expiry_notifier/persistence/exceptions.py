"""Persistence layer exceptions.

Everything raised by the persistence package derives from PersistenceError,
so callers that only care about "the database failed" catch one type.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""


class DatabaseConnectionError(PersistenceError):
    """Database URL invalid, unreachable, or not yet initialised."""


class RecordNotFoundError(PersistenceError):
    """A record the operation requires does not exist.

    Plain lookups return None instead of raising this.
    """


class DataIntegrityError(PersistenceError):
    """A constraint rejected the write.

    For notification history this means a success record for the same
    (item, threshold day) already exists, i.e. another run got there first.
    """
