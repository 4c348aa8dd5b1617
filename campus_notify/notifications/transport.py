"""Mail transports.

The dispatcher only knows the MailTransport protocol; SMTPTransport is the
concrete smtplib-backed implementation configured from the environment.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, Optional, Protocol

from email_validator import EmailNotValidError, validate_email

from campus_notify.config.environment import EnvironmentConfig

from .models import EmailError

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    """Anything that can hand a fully built message to a mail system."""

    def send_mail(self, message: EmailMessage) -> None:
        """Transmit ``message``; raise on failure."""
        ...


class SMTPTransport:
    """smtplib wrapper with implicit TLS, STARTTLS and optional authentication.

    Opens one connection per message and always closes it. Connection
    factories can be injected for testing.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30.0,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    @classmethod
    def from_environment(
        cls, env_config: EnvironmentConfig, use_tls: bool = True, timeout: float = 30.0
    ) -> "SMTPTransport":
        """Build a transport from validated environment settings."""
        return cls(
            host=env_config.smtp_host,
            port=env_config.smtp_port,
            username=env_config.smtp_user,
            password=env_config.smtp_pass,
            use_tls=use_tls,
            timeout=timeout,
        )

    def send_mail(self, message: EmailMessage) -> None:
        """Send one message.

        Port 465 uses implicit TLS; any other port uses plain SMTP upgraded
        with STARTTLS when ``use_tls`` is set.

        Raises:
            EmailError: If connecting, authenticating or sending fails
        """
        smtp = None
        try:
            if self.port == 465:
                logger.debug(f"Connecting to {self.host}:{self.port} with implicit TLS")
                smtp = self.smtp_ssl_factory(
                    self.host,
                    self.port,
                    timeout=self.timeout,
                    context=ssl.create_default_context(),
                )
            else:
                logger.debug(f"Connecting to {self.host}:{self.port}")
                smtp = self.smtp_factory(self.host, self.port, timeout=self.timeout)
                if self.use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if self.username and self.password:
                smtp.login(self.username, self.password)

            smtp.send_message(message)
            logger.debug(f"Message sent to {message['To']}")

        except smtplib.SMTPException as e:
            raise EmailError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise EmailError(f"Network error during SMTP connection: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def normalize_address(address: str) -> str:
    """Validate one email address and return its normalized form.

    Raises:
        ValueError: If the address is missing or malformed
    """
    if not address or not address.strip():
        raise ValueError("Recipient email address is empty")

    try:
        return validate_email(address.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(f"Invalid email address '{address}': {e}") from e


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the From header value, e.g. ``"Campus Notifications <noreply@school.edu>"``.

    Uses SMTP_SENDER, then SMTP_USER, then noreply@<smtp host>.
    """
    sender_email = env_config.smtp_sender or env_config.smtp_user or f"noreply@{env_config.smtp_host}"
    return f"{env_config.smtp_sender_name} <{sender_email}>"
