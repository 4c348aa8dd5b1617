"""campus-notify: notification storage, email dispatch and retention for the school dashboard."""

__version__ = "0.1.0"
