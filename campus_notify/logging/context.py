"""Scoped logging context backed by contextvars.

Fields pushed here (recipient_id, notification_type, sweep_id, ...) are picked up
by ``ContextualFilter`` and attached to every record emitted inside the scope.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional


LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields currently in scope."""
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge new fields into the active context.

    Args:
        **kwargs: Fields to add (existing keys are overridden)

    Returns:
        Token for restoring the previous context with pop_log_context()

    Example:
        >>> token = push_log_context(recipient_id=42)
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the context captured by ``token``."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop every field from the context. Mostly useful in tests."""
    LogContextVar.set({})


class log_context:
    """Context manager that pushes fields on entry and restores them on exit.

    Example:
        >>> with log_context(recipient_id=42, notification_type="grade_update"):
        ...     logger.info("Dispatching notice")
    """

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
