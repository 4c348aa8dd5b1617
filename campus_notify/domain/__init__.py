"""Domain models for campus-notify."""

from .models import Audience, Notification, NotificationType, Recipient

__all__ = ["Audience", "Notification", "NotificationType", "Recipient"]
