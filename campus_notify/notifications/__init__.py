"""Notification dispatch: coordinate stored notices with best-effort email.

This module provides:
- NotificationCoordinator: Entry point mapping school events to notices and emails
- EmailDispatcher: Renders per-type emails and makes one delivery attempt
- TemplateRenderer: Jinja2-based email template rendering
- SMTPTransport: smtplib-backed MailTransport with TLS/SSL support
- DispatchResult: Outcome of a derived notify operation
"""

from .coordinator import NotificationCoordinator
from .dispatcher import EmailDispatcher
from .models import (
    DispatchResult,
    DispatchStatus,
    EmailError,
    NotificationTemplateError,
    RenderedEmail,
)
from .templates import TemplateRenderer
from .transport import (
    MailTransport,
    SMTPTransport,
    build_sender_address,
    normalize_address,
)

__all__ = [
    # Entry points
    "NotificationCoordinator",
    "EmailDispatcher",
    # Models and results
    "DispatchResult",
    "DispatchStatus",
    "RenderedEmail",
    # Exceptions
    "EmailError",
    "NotificationTemplateError",
    # Components
    "TemplateRenderer",
    "MailTransport",
    "SMTPTransport",
    # Utilities
    "build_sender_address",
    "normalize_address",
]
