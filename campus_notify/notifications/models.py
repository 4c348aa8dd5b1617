"""Result types and exceptions for the notification pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EmailError(Exception):
    """Raised when an email cannot be rendered, addressed or transmitted.

    The underlying cause (smtplib error, socket error, ...) is chained as
    ``__cause__``.
    """

    pass


class NotificationTemplateError(EmailError):
    """Raised when template rendering fails due to a missing template or variable."""

    pass


@dataclass(frozen=True)
class RenderedEmail:
    """Subject and bodies produced from one template set."""

    subject: str
    text_body: str
    html_body: str


class DispatchStatus(str, Enum):
    """Outcome of a derived notify operation."""

    SENT = "sent"  # stored and emailed
    STORED = "stored"  # stored; the event has no email counterpart
    RECIPIENT_NOT_FOUND = "recipient_not_found"
    STORE_FAILED = "store_failed"
    EMAIL_FAILED = "email_failed"  # stored, email attempt failed
    FAILED = "failed"  # unexpected error


@dataclass
class DispatchResult:
    """What happened during one notify_* call.

    Notify operations never raise; callers that care about the outcome inspect
    this value instead.

    Attributes:
        status: Outcome of the operation
        notification_type: Notice type handled
        recipient_id: Resolved user id, if any
        notification_id: Id of the stored notice (single-recipient events)
        created: Number of notices written
        error: Error description for failed outcomes
    """

    status: DispatchStatus
    notification_type: str
    recipient_id: Optional[int] = None
    notification_id: Optional[int] = None
    created: int = 0
    error: Optional[str] = None

    def is_success(self) -> bool:
        """True when every channel the event uses succeeded."""
        return self.status in (DispatchStatus.SENT, DispatchStatus.STORED)

    def is_stored(self) -> bool:
        """True when the in-app notice exists, whatever happened to the email."""
        return self.created > 0
