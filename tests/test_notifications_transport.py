"""Unit tests for the SMTP mail transport.

Tests SMTPTransport for:
- Connection handling (SMTP and SMTP_SSL)
- TLS/STARTTLS negotiation
- Authentication (with and without credentials)
- Error wrapping and connection cleanup
- Address normalization and sender building
"""

import smtplib
from email.message import EmailMessage
from unittest.mock import MagicMock, Mock

import pytest

from campus_notify.config.environment import EnvironmentConfig
from campus_notify.notifications.models import EmailError
from campus_notify.notifications.transport import (
    SMTPTransport,
    build_sender_address,
    normalize_address,
)


@pytest.fixture
def sample_message():
    """Sample email message for testing."""
    msg = EmailMessage()
    msg["Subject"] = "Attendance Alert"
    msg["From"] = "noreply@example.com"
    msg["To"] = "parent@example.com"
    msg.set_content("Body")
    return msg


def test_send_with_starttls(sample_message):
    """Test sending email with STARTTLS (port 587)."""
    mock_smtp = MagicMock()
    mock_factory = Mock(return_value=mock_smtp)

    transport = SMTPTransport(
        "smtp.example.com", 587, "user@example.com", "secret123", smtp_factory=mock_factory
    )
    transport.send_mail(sample_message)

    mock_factory.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
    mock_smtp.starttls.assert_called_once()
    mock_smtp.login.assert_called_once_with("user@example.com", "secret123")
    mock_smtp.send_message.assert_called_once_with(sample_message)
    mock_smtp.quit.assert_called_once()


def test_send_with_implicit_tls(sample_message):
    """Test sending email with implicit TLS (port 465)."""
    mock_smtp_ssl = MagicMock()
    mock_ssl_factory = Mock(return_value=mock_smtp_ssl)
    mock_factory = Mock()

    transport = SMTPTransport(
        "smtp.example.com",
        465,
        "user@example.com",
        "app-password",
        smtp_factory=mock_factory,
        smtp_ssl_factory=mock_ssl_factory,
    )
    transport.send_mail(sample_message)

    mock_factory.assert_not_called()
    args, kwargs = mock_ssl_factory.call_args
    assert args == ("smtp.example.com", 465)
    assert "context" in kwargs
    mock_smtp_ssl.starttls.assert_not_called()
    mock_smtp_ssl.login.assert_called_once_with("user@example.com", "app-password")
    mock_smtp_ssl.send_message.assert_called_once_with(sample_message)
    mock_smtp_ssl.quit.assert_called_once()


def test_send_without_auth_or_tls(sample_message):
    mock_smtp = MagicMock()

    transport = SMTPTransport(
        "relay.example.com", 25, use_tls=False, smtp_factory=Mock(return_value=mock_smtp)
    )
    transport.send_mail(sample_message)

    mock_smtp.starttls.assert_not_called()
    mock_smtp.login.assert_not_called()
    mock_smtp.send_message.assert_called_once_with(sample_message)


def test_smtp_exception_is_wrapped(sample_message):
    """Test that SMTP exceptions become EmailError and the connection is closed."""
    mock_smtp = MagicMock()
    mock_smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused({})

    transport = SMTPTransport("smtp.example.com", smtp_factory=Mock(return_value=mock_smtp))

    with pytest.raises(EmailError, match="SMTP error") as exc_info:
        transport.send_mail(sample_message)

    assert isinstance(exc_info.value.__cause__, smtplib.SMTPException)
    mock_smtp.quit.assert_called_once()


def test_network_error_is_wrapped(sample_message):
    mock_smtp = MagicMock()
    mock_smtp.starttls.side_effect = OSError("Network unreachable")

    transport = SMTPTransport("smtp.example.com", smtp_factory=Mock(return_value=mock_smtp))

    with pytest.raises(EmailError, match="Network error"):
        transport.send_mail(sample_message)

    mock_smtp.send_message.assert_not_called()
    mock_smtp.quit.assert_called_once()


def test_connection_failure_is_wrapped(sample_message):
    transport = SMTPTransport(
        "smtp.example.com", smtp_factory=Mock(side_effect=ConnectionRefusedError("refused"))
    )

    with pytest.raises(EmailError):
        transport.send_mail(sample_message)


def test_quit_failure_does_not_mask_success(sample_message):
    mock_smtp = MagicMock()
    mock_smtp.quit.side_effect = smtplib.SMTPServerDisconnected("gone")

    transport = SMTPTransport("smtp.example.com", smtp_factory=Mock(return_value=mock_smtp))
    transport.send_mail(sample_message)

    mock_smtp.send_message.assert_called_once()


def test_from_environment():
    env_config = EnvironmentConfig(
        smtp_host="smtp.example.com",
        smtp_port=2525,
        smtp_user="user@example.com",
        smtp_pass="pw",
    )

    transport = SMTPTransport.from_environment(env_config, use_tls=False, timeout=5)

    assert transport.host == "smtp.example.com"
    assert transport.port == 2525
    assert transport.username == "user@example.com"
    assert transport.password == "pw"
    assert transport.use_tls is False
    assert transport.timeout == 5


class TestNormalizeAddress:
    def test_valid_address(self):
        assert normalize_address("  parent@example.com ") == "parent@example.com"

    def test_domain_is_lowercased(self):
        assert normalize_address("Parent@EXAMPLE.com") == "Parent@example.com"

    @pytest.mark.parametrize("address", ["", "   ", None])
    def test_empty_address(self, address):
        with pytest.raises(ValueError, match="empty"):
            normalize_address(address)

    @pytest.mark.parametrize("address", ["not-an-email", "a@", "@example.com", "a b@example.com"])
    def test_invalid_address(self, address):
        with pytest.raises(ValueError, match="Invalid email address"):
            normalize_address(address)


class TestBuildSenderAddress:
    def test_prefers_explicit_sender(self):
        env_config = EnvironmentConfig(
            smtp_host="smtp.example.com",
            smtp_user="user@example.com",
            smtp_sender="office@example.com",
            smtp_sender_name="Greenfield High",
        )

        assert build_sender_address(env_config) == "Greenfield High <office@example.com>"

    def test_falls_back_to_smtp_user(self):
        env_config = EnvironmentConfig(smtp_host="smtp.example.com", smtp_user="user@example.com")

        assert build_sender_address(env_config) == "Campus Notifications <user@example.com>"

    def test_falls_back_to_noreply_on_host(self):
        env_config = EnvironmentConfig(smtp_host="smtp.example.com")

        assert build_sender_address(env_config) == "Campus Notifications <noreply@smtp.example.com>"
