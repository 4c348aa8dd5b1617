"""Persistence layer for notification records.

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Store
    - NotificationStore: create, list, read tracking, bulk fan-out, retention delete

    # Exceptions
    - StoreError: Base exception for all persistence errors (alias PersistenceError)
    - DatabaseConnectionError: Database connection/initialization failures
    - DataIntegrityError: Constraint violations

Example usage:
    >>> from campus_notify.persistence import init_database, NotificationStore
    >>>
    >>> init_database("sqlite:///./data/campus_notify.db")
    >>> store = NotificationStore()
    >>> notification_id = store.create(10, "announcement", "Closed", "No classes today")
    >>> store.unread_count(10)
    1
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    StoreError,
)
from .store import NotificationStore

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Store
    "NotificationStore",
    # Exceptions
    "StoreError",
    "PersistenceError",
    "DatabaseConnectionError",
    "DataIntegrityError",
]
