"""Soft checks that warn about legal but questionable configuration."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Inspect a raw configuration dictionary and return warning messages.

    Args:
        config_dict: Raw configuration dictionary (before validation)

    Returns:
        List of warning messages (empty when nothing looks suspicious)
    """
    warning_messages = []

    retention = config_dict.get("retention", {})
    if isinstance(retention, dict):
        days = retention.get("retention_days")
        if isinstance(days, int) and 0 < days < 7:
            warning_messages.append(
                f"Short retention_days ({days}) may delete notices before recipients read them"
            )

    email = config_dict.get("email", {})
    if isinstance(email, dict):
        if email.get("enabled") is False:
            warning_messages.append(
                "Email channel is disabled; derived notices will be stored in-app only"
            )
        if email.get("use_tls") is False:
            warning_messages.append("use_tls is false; SMTP credentials will be sent unencrypted")

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit each message through Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
