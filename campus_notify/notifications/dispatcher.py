"""Email dispatcher: turn a notice into one message and hand it to a transport.

One call is one attempt. There is no retry, queueing or batching; whether to
try again is the caller's decision.
"""

import logging
from email.message import EmailMessage
from typing import Any, Mapping, Optional

from campus_notify.logging import get_logger

from . import templates
from .models import EmailError, RenderedEmail
from .templates import TemplateRenderer
from .transport import MailTransport, normalize_address

logger = get_logger(__name__, component="email")


class EmailDispatcher:
    """Render per-type emails and deliver them through an injected MailTransport."""

    def __init__(
        self,
        transport: MailTransport,
        sender: str,
        renderer: Optional[TemplateRenderer] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the dispatcher.

        Args:
            transport: Object with ``send_mail(EmailMessage)``
            sender: Value for the From header
            renderer: Template renderer (creates default if None)
            logger_instance: Logger instance (uses module logger if None)
        """
        self.transport = transport
        self.sender = sender
        self.renderer = renderer or TemplateRenderer()
        self.logger = logger_instance or logger

    def render(self, template_key: str, context: Mapping[str, Any]) -> RenderedEmail:
        """Render the subject and bodies for one email kind.

        Raises:
            NotificationTemplateError: If rendering fails
        """
        return self.renderer.render(template_key, context)

    def send(
        self,
        recipient_address: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> None:
        """Make exactly one delivery attempt.

        Args:
            recipient_address: Destination email address
            subject: Subject line
            body: Plain-text body
            html_body: Optional HTML alternative

        Raises:
            EmailError: If the address or a header is invalid, or the transport fails
        """
        try:
            address = normalize_address(recipient_address)
        except ValueError as e:
            raise EmailError(str(e)) from e

        try:
            message = EmailMessage()
            message["Subject"] = subject
            message["From"] = self.sender
            message["To"] = address
            message.set_content(body)
            if html_body:
                message.add_alternative(html_body, subtype="html")
        except ValueError as e:
            # Header values containing CR/LF are rejected by the email policy.
            raise EmailError(f"Failed to build email to {address}: {e}") from e

        try:
            self.transport.send_mail(message)
        except EmailError as e:
            self.logger.warning(
                f"Email delivery to {address} failed: {e}",
                extra={"event": "email.send.failure", "error_type": type(e).__name__},
            )
            raise
        except Exception as e:
            self.logger.warning(
                f"Email delivery to {address} failed: {e}",
                extra={"event": "email.send.failure", "error_type": type(e).__name__},
            )
            raise EmailError(f"Failed to send email to {address}: {e}") from e

        self.logger.info(
            f"Email sent to {address}",
            extra={"event": "email.send.success", "subject": subject},
        )

    def send_rendered(self, recipient_address: str, rendered: RenderedEmail) -> None:
        self.send(recipient_address, rendered.subject, rendered.text_body, rendered.html_body)

    def send_grade_notification(
        self, recipient_address: str, student_name: str, course_name: str, grade: Any
    ) -> None:
        rendered = self.render(
            templates.GRADE_UPDATE,
            {"student_name": student_name, "course_name": course_name, "grade": grade},
        )
        self.send_rendered(recipient_address, rendered)

    def send_attendance_alert(
        self,
        recipient_address: str,
        student_name: str,
        attendance_percentage: Any,
        absences: Any,
    ) -> None:
        rendered = self.render(
            templates.ATTENDANCE_ALERT,
            {
                "student_name": student_name,
                "attendance_percentage": attendance_percentage,
                "absences": absences,
            },
        )
        self.send_rendered(recipient_address, rendered)

    def send_fee_reminder(
        self, recipient_address: str, student_name: str, amount: Any, due_date: Any
    ) -> None:
        rendered = self.render(
            templates.FEE_REMINDER,
            {"student_name": student_name, "amount": amount, "due_date": due_date},
        )
        self.send_rendered(recipient_address, rendered)

    def send_generic(self, recipient_address: str, subject: str, message: str) -> None:
        """Send a freeform notice using the generic template."""
        rendered = self.render(templates.GENERIC, {"subject": subject, "message": message})
        self.send_rendered(recipient_address, rendered)
