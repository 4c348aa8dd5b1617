"""Persistence layer exceptions.

Every failure raised by the persistence layer is a StoreError, so callers can
catch the whole family with a single except clause.
"""


class StoreError(Exception):
    """Base exception for all persistence layer errors.

    The message carries the operation context (e.g. "Failed to create
    notification: ...") and the original driver exception is chained as
    ``__cause__``.
    """

    pass


# Name kept for callers that think in terms of the persistence layer.
PersistenceError = StoreError


class DatabaseConnectionError(StoreError):
    """Raised when the database cannot be initialised or reached.

    Examples:
    - Invalid database URL
    - Database file not accessible
    - get_session() called before init_database()
    """

    pass


class DataIntegrityError(StoreError):
    """Raised when a write violates a database constraint.

    Examples:
    - NOT NULL violation (missing recipient)
    - Value too long for a bounded column on strict backends
    """

    pass
