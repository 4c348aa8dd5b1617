"""Notification store: durable persistence for notices.

Each public method runs in its own session scope, i.e. its own transaction, and
returns domain models rather than ORM rows. Every database failure surfaces as
StoreError (or one of its subclasses); nothing here swallows errors.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, ContextManager, Iterable, Iterator, List, Optional, Union

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from campus_notify.domain.models import Notification, NotificationType
from campus_notify.utils.timestamps import cutoff_before, utc_now

from .database import get_session
from .exceptions import DataIntegrityError, StoreError
from .schema import NotificationModel, format_created_at, serialize_data

logger = logging.getLogger(__name__)

SessionScope = Callable[[], ContextManager[Session]]
TypeLike = Union[NotificationType, str]


def _type_value(notification_type: TypeLike) -> str:
    if isinstance(notification_type, NotificationType):
        return notification_type.value
    return str(notification_type)


class NotificationStore:
    """CRUD, read tracking, fan-out and retention for notification rows."""

    def __init__(
        self,
        session_scope: Optional[SessionScope] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the store.

        Args:
            session_scope: Factory returning a transactional session context
                manager (defaults to persistence.get_session)
            clock: Source of "now" for created_at and retention cutoffs
                (defaults to utc_now)
        """
        self._session_scope = session_scope or get_session
        self._clock = clock or utc_now

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        """Open one transaction and translate driver errors into StoreError."""
        try:
            with self._session_scope() as session:
                yield session
        except StoreError:
            raise
        except IntegrityError as e:
            logger.error(f"Integrity error while trying to {action}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to {action} due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error while trying to {action}: {e}", exc_info=True)
            raise StoreError(f"Failed to {action}: {e}") from e

    def create(
        self,
        recipient_id: int,
        notification_type: TypeLike,
        title: str,
        message: str,
        data: Any = None,
        sender_id: Optional[int] = None,
    ) -> int:
        """Insert one notice and return its generated id.

        Raises:
            StoreError: If the payload cannot be serialized or the write fails
        """
        payload = self._serialize(data, "create notification")

        with self._transaction("create notification") as session:
            model = NotificationModel(
                recipient_id=recipient_id,
                sender_id=sender_id,
                type=_type_value(notification_type),
                title=title,
                message=message,
                data=payload,
                is_read=False,
                created_at=format_created_at(self._clock()),
            )
            session.add(model)
            session.flush()
            notification_id = model.id

        logger.debug(
            f"Created notification {notification_id} for recipient {recipient_id}",
            extra={"event": "store.notification.created", "notification_id": notification_id},
        )
        return notification_id

    def get(self, notification_id: int) -> Optional[Notification]:
        """Return one notice by id, or None if it does not exist."""
        with self._transaction("retrieve notification") as session:
            model = session.get(NotificationModel, notification_id)
            return model.to_domain() if model is not None else None

    def list_for_recipient(
        self, recipient_id: int, limit: int = 20, offset: int = 0
    ) -> List[Notification]:
        """Return one page of a recipient's notices, newest first.

        Returns:
            List of Notification domain models (empty list if none found)

        Raises:
            ValueError: If limit or offset is negative
            StoreError: If the query fails
        """
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must be non-negative")

        with self._transaction("list notifications") as session:
            stmt = (
                select(NotificationModel)
                .where(NotificationModel.recipient_id == recipient_id)
                .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
                .limit(limit)
                .offset(offset)
            )
            models = session.execute(stmt).scalars().all()
            return [model.to_domain() for model in models]

    def mark_read(self, notification_id: int, recipient_id: int) -> bool:
        """Flip one unread notice owned by ``recipient_id`` to read.

        Returns:
            True if a row changed; False if the notice does not exist, belongs
            to someone else, or was already read
        """
        with self._transaction("mark notification as read") as session:
            stmt = (
                update(NotificationModel)
                .where(
                    NotificationModel.id == notification_id,
                    NotificationModel.recipient_id == recipient_id,
                    NotificationModel.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            changed = session.execute(stmt).rowcount

        return changed > 0

    def mark_all_read(self, recipient_id: int) -> int:
        """Flip every unread notice of a recipient; returns the number changed."""
        with self._transaction("mark all notifications as read") as session:
            stmt = (
                update(NotificationModel)
                .where(
                    NotificationModel.recipient_id == recipient_id,
                    NotificationModel.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            changed = session.execute(stmt).rowcount

        return changed

    def unread_count(self, recipient_id: int) -> int:
        """Count a recipient's notices with is_read = False."""
        with self._transaction("count unread notifications") as session:
            stmt = (
                select(func.count())
                .select_from(NotificationModel)
                .where(
                    NotificationModel.recipient_id == recipient_id,
                    NotificationModel.is_read.is_(False),
                )
            )
            return int(session.execute(stmt).scalar_one())

    def create_many(
        self,
        recipient_ids: Iterable[int],
        notification_type: TypeLike,
        title: str,
        message: str,
        data: Any = None,
        sender_id: Optional[int] = None,
    ) -> int:
        """Insert one notice per recipient as a single transaction.

        Either every row is written or none is. All caller text travels as bound
        parameters of one multi-row INSERT.

        Returns:
            Number of rows created (0 for an empty recipient list)

        Raises:
            StoreError: If any row fails; the whole batch is rolled back
        """
        ids = list(recipient_ids)
        if not ids:
            return 0

        payload = self._serialize(data, "create notifications in bulk")
        created_at = format_created_at(self._clock())
        type_value = _type_value(notification_type)
        rows = [
            {
                "recipient_id": recipient_id,
                "sender_id": sender_id,
                "type": type_value,
                "title": title,
                "message": message,
                "data": payload,
                "is_read": False,
                "created_at": created_at,
            }
            for recipient_id in ids
        ]

        with self._transaction("create notifications in bulk") as session:
            session.execute(insert(NotificationModel), rows)

        logger.info(
            f"Created {len(rows)} {type_value} notifications in one batch",
            extra={"event": "store.notification.bulk_created", "count": len(rows)},
        )
        return len(rows)

    def delete_older_than(self, duration_days: int) -> int:
        """Delete notices created more than ``duration_days`` days ago.

        Idempotent: a second call with nothing eligible returns 0.

        Returns:
            Count of deleted rows

        Raises:
            ValueError: If duration_days is negative
            StoreError: If the delete fails
        """
        if duration_days < 0:
            raise ValueError("duration_days must be non-negative")

        cutoff = format_created_at(cutoff_before(duration_days, self._clock()))

        with self._transaction("delete old notifications") as session:
            stmt = (
                delete(NotificationModel)
                .where(NotificationModel.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            deleted_count = session.execute(stmt).rowcount

        logger.info(
            f"Deleted {deleted_count} notifications older than {duration_days} days",
            extra={
                "event": "store.notification.deleted_old",
                "deleted_count": deleted_count,
                "cutoff": cutoff,
            },
        )
        return deleted_count

    @staticmethod
    def _serialize(data: Any, action: str) -> Optional[str]:
        try:
            return serialize_data(data)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Failed to {action}: payload is not JSON-serializable: {e}") from e
