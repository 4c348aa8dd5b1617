"""Retention sweep: delete notices past the retention window."""

import logging
from typing import Optional

from campus_notify.config.models import DEFAULT_RETENTION_DAYS
from campus_notify.logging import get_logger
from campus_notify.logging.context import log_context
from campus_notify.persistence.store import NotificationStore

logger = get_logger(__name__, component="retention")


class RetentionSweeper:
    """Delete notices older than ``retention_days`` from the store.

    Safe to run repeatedly; a sweep with nothing eligible deletes nothing.
    """

    def __init__(
        self,
        store: NotificationStore,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        logger_instance: Optional[logging.Logger] = None,
    ):
        if retention_days < 0:
            raise ValueError("retention_days must be non-negative")
        self.store = store
        self.retention_days = retention_days
        self.logger = logger_instance or logger

    def sweep(self) -> int:
        """Run one sweep and return the number of deleted notices.

        Raises:
            StoreError: If the delete fails
        """
        with log_context(retention_days=self.retention_days):
            self.logger.debug("Retention sweep starting", extra={"event": "retention.sweep.starting"})
            deleted = self.store.delete_older_than(self.retention_days)
            self.logger.info(
                f"Retention sweep removed {deleted} notices",
                extra={"event": "retention.sweep.completed", "deleted_count": deleted},
            )
            return deleted
