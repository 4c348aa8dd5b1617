"""Notification coordinator: map school events to stored notices and emails.

Bookkeeping operations (create, list, mark read, counts, cleanup) are thin
pass-throughs to the store and propagate StoreError. The derived ``notify_*``
operations, ``send_announcement`` and ``send_to_audience`` never raise: every outcome is logged and
reported as a DispatchResult.

The order for student events is fixed: resolve the recipient, store the notice,
then attempt the email. A failed email never removes the stored notice.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from campus_notify.config.models import DEFAULT_RETENTION_DAYS
from campus_notify.directory import RecipientDirectory, resolve_audience
from campus_notify.domain.models import Audience, Notification, NotificationType, Recipient
from campus_notify.logging import get_logger
from campus_notify.logging.context import log_context
from campus_notify.persistence.exceptions import StoreError
from campus_notify.persistence.store import NotificationStore, TypeLike
from campus_notify.retention import RetentionSweeper

from .dispatcher import EmailDispatcher
from .models import DispatchResult, DispatchStatus, EmailError

logger = get_logger(__name__, component="notification")

GRADE_UPDATE_TITLE = "Grade Updated"
ATTENDANCE_ALERT_TITLE = "Attendance Alert"
FEE_REMINDER_TITLE = "Fee Payment Reminder"
TIMETABLE_UPDATE_TITLE = "Timetable Updated"


def _payload_value(value: Any) -> Any:
    """Coerce dates and decimals into JSON-friendly scalars for the data payload."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class NotificationCoordinator:
    """Entry point used by the rest of the dashboard to raise notices."""

    def __init__(
        self,
        store: NotificationStore,
        dispatcher: Optional[EmailDispatcher],
        directory: RecipientDirectory,
        sweeper: Optional[RetentionSweeper] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the coordinator.

        Args:
            store: Notification store used for every write
            dispatcher: Email dispatcher; None disables the email channel
            directory: Resolves student ids to recipients
            sweeper: RetentionSweeper backing cleanup_old_notifications
            logger_instance: Logger instance (uses module logger if None)
        """
        self.store = store
        self.dispatcher = dispatcher
        self.directory = directory
        self.sweeper = sweeper
        self.logger = logger_instance or logger

    # Bookkeeping

    def create_notification(
        self,
        user_id: int,
        notification_type: TypeLike,
        title: str,
        message: str,
        data: Any = None,
        sender_id: Optional[int] = None,
    ) -> int:
        return self.store.create(
            user_id, notification_type, title, message, data=data, sender_id=sender_id
        )

    def get_user_notifications(
        self, user_id: int, limit: int = 20, offset: int = 0
    ) -> List[Notification]:
        return self.store.list_for_recipient(user_id, limit=limit, offset=offset)

    def mark_as_read(self, notification_id: int, user_id: int) -> bool:
        return self.store.mark_read(notification_id, user_id)

    def mark_all_as_read(self, user_id: int) -> int:
        return self.store.mark_all_read(user_id)

    def get_unread_count(self, user_id: int) -> int:
        return self.store.unread_count(user_id)

    def cleanup_old_notifications(self) -> int:
        """Run one retention sweep.

        Uses the configured sweeper when present, otherwise deletes notices
        older than the default retention window directly.
        """
        if self.sweeper is not None:
            return self.sweeper.sweep()

        return self.store.delete_older_than(DEFAULT_RETENTION_DAYS)

    # Derived events

    def notify_grade_update(self, student_id: int, course_name: str, grade: Any) -> DispatchResult:
        """Store a grade notice for the student and email them."""

        def send(recipient: Recipient) -> None:
            self.dispatcher.send_grade_notification(
                recipient.email, recipient.display_name, course_name, grade
            )

        return self._notify_student(
            student_id,
            NotificationType.GRADE_UPDATE,
            GRADE_UPDATE_TITLE,
            f"Your grade for {course_name} has been updated to {grade}",
            {"courseName": course_name, "grade": _payload_value(grade)},
            send,
        )

    def notify_attendance_alert(
        self, student_id: int, attendance_percentage: Any, absences: Any
    ) -> DispatchResult:
        """Store an attendance notice for the student and email them."""

        def send(recipient: Recipient) -> None:
            self.dispatcher.send_attendance_alert(
                recipient.email, recipient.display_name, attendance_percentage, absences
            )

        return self._notify_student(
            student_id,
            NotificationType.ATTENDANCE_ALERT,
            ATTENDANCE_ALERT_TITLE,
            f"Your attendance percentage is {attendance_percentage}%. Absences: {absences}",
            {
                "attendancePercentage": _payload_value(attendance_percentage),
                "absences": _payload_value(absences),
            },
            send,
        )

    def notify_fee_reminder(self, student_id: int, amount: Any, due_date: Any) -> DispatchResult:
        """Store a fee reminder for the student and email them."""

        def send(recipient: Recipient) -> None:
            self.dispatcher.send_fee_reminder(
                recipient.email, recipient.display_name, amount, due_date
            )

        return self._notify_student(
            student_id,
            NotificationType.FEE_REMINDER,
            FEE_REMINDER_TITLE,
            f"You have outstanding fees of ${amount} due on {due_date}",
            {"amount": _payload_value(amount), "dueDate": _payload_value(due_date)},
            send,
        )

    def notify_timetable_update(self, user_id: int, message: str) -> DispatchResult:
        """Store an in-app timetable notice. No lookup, no email."""
        notification_type = NotificationType.TIMETABLE_UPDATE.value

        with log_context(recipient_id=user_id, notification_type=notification_type):
            try:
                notification_id = self.store.create(
                    user_id, notification_type, TIMETABLE_UPDATE_TITLE, message
                )
            except StoreError as e:
                return self._store_failed(notification_type, e, recipient_id=user_id)
            except Exception as e:
                return self._unexpected(notification_type, e, recipient_id=user_id)

            self.logger.info(
                f"Stored timetable notice {notification_id} for user {user_id}",
                extra={"event": "notification.stored", "notification_id": notification_id},
            )
            return DispatchResult(
                status=DispatchStatus.STORED,
                notification_type=notification_type,
                recipient_id=user_id,
                notification_id=notification_id,
                created=1,
            )

    def send_announcement(
        self,
        user_ids: Iterable[int],
        title: str,
        message: str,
        sender_id: Optional[int] = None,
    ) -> DispatchResult:
        """Fan one announcement out to every user as a single atomic batch."""
        notification_type = NotificationType.ANNOUNCEMENT.value

        with log_context(notification_type=notification_type):
            try:
                ids = list(user_ids)
                created = self.store.create_many(
                    ids, notification_type, title, message, sender_id=sender_id
                )
            except StoreError as e:
                return self._store_failed(notification_type, e)
            except Exception as e:
                return self._unexpected(notification_type, e)

            self.logger.info(
                f"Stored announcement for {created} users",
                extra={"event": "notification.announcement.stored", "count": created},
            )
            return DispatchResult(
                status=DispatchStatus.STORED,
                notification_type=notification_type,
                created=created,
            )

    def send_to_audience(
        self,
        audience: Audience,
        group_id: int,
        title: str,
        message: str,
        notification_type: TypeLike = NotificationType.ANNOUNCEMENT,
        data: Any = None,
        sender_id: Optional[int] = None,
        role: Optional[str] = None,
    ) -> DispatchResult:
        """Resolve a group audience and store one notice per member atomically.

        An audience with no members creates nothing and reports
        RECIPIENT_NOT_FOUND. In-app only; no email is sent.

        Args:
            audience: Group kind (department, course, class, ...)
            group_id: Identifier of the group within its kind
            role: Narrows a department audience to one user role
        """
        type_value = (
            notification_type.value
            if isinstance(notification_type, NotificationType)
            else str(notification_type)
        )
        audience_value = audience.value if isinstance(audience, Audience) else str(audience)

        with log_context(
            notification_type=type_value, audience=audience_value, group_id=group_id
        ):
            try:
                members = resolve_audience(self.directory, audience, group_id, role=role)
            except StoreError as e:
                return self._store_failed(type_value, e)
            except Exception as e:
                return self._unexpected(type_value, e)

            if not members:
                self.logger.info(
                    f"No members in {audience_value} {group_id}; no notices created",
                    extra={"event": "notification.audience.empty"},
                )
                return DispatchResult(
                    status=DispatchStatus.RECIPIENT_NOT_FOUND,
                    notification_type=type_value,
                )

            try:
                created = self.store.create_many(
                    [member.recipient_id for member in members],
                    type_value,
                    title,
                    message,
                    data=data,
                    sender_id=sender_id,
                )
            except StoreError as e:
                return self._store_failed(type_value, e)
            except Exception as e:
                return self._unexpected(type_value, e)

            self.logger.info(
                f"Stored {type_value} notice for {created} members of {audience_value} {group_id}",
                extra={"event": "notification.audience.stored", "count": created},
            )
            return DispatchResult(
                status=DispatchStatus.STORED,
                notification_type=type_value,
                created=created,
            )

    def _notify_student(
        self,
        student_id: int,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Dict[str, Any],
        send_email: Callable[[Recipient], None],
    ) -> DispatchResult:
        type_value = notification_type.value

        with log_context(student_id=student_id, notification_type=type_value):
            try:
                recipient = self.directory.find_student(student_id)
            except StoreError as e:
                return self._store_failed(type_value, e)
            except Exception as e:
                return self._unexpected(type_value, e)

            if recipient is None:
                self.logger.info(
                    f"Student {student_id} not found; no notice created",
                    extra={"event": "notification.recipient_not_found"},
                )
                return DispatchResult(
                    status=DispatchStatus.RECIPIENT_NOT_FOUND,
                    notification_type=type_value,
                )

            recipient_id = recipient.recipient_id
            with log_context(recipient_id=recipient_id):
                try:
                    notification_id = self.store.create(
                        recipient_id, notification_type, title, message, data=data
                    )
                except StoreError as e:
                    return self._store_failed(type_value, e, recipient_id=recipient_id)
                except Exception as e:
                    return self._unexpected(type_value, e, recipient_id=recipient_id)

                self.logger.info(
                    f"Stored {type_value} notice {notification_id}",
                    extra={"event": "notification.stored", "notification_id": notification_id},
                )

                if self.dispatcher is None or not recipient.email:
                    self.logger.info(
                        "Email skipped: no dispatcher or no address on file",
                        extra={"event": "notification.email.skipped"},
                    )
                    return DispatchResult(
                        status=DispatchStatus.STORED,
                        notification_type=type_value,
                        recipient_id=recipient_id,
                        notification_id=notification_id,
                        created=1,
                    )

                try:
                    send_email(recipient)
                except EmailError as e:
                    self.logger.warning(
                        f"Email for notice {notification_id} failed: {e}",
                        extra={
                            "event": "notification.email.failed",
                            "notification_id": notification_id,
                            "error_type": type(e).__name__,
                        },
                    )
                    return DispatchResult(
                        status=DispatchStatus.EMAIL_FAILED,
                        notification_type=type_value,
                        recipient_id=recipient_id,
                        notification_id=notification_id,
                        created=1,
                        error=str(e),
                    )
                except Exception as e:
                    result = self._unexpected(type_value, e, recipient_id=recipient_id)
                    result.notification_id = notification_id
                    result.created = 1
                    return result

                self.logger.info(
                    f"Notice {notification_id} stored and emailed",
                    extra={"event": "notification.sent", "notification_id": notification_id},
                )
                return DispatchResult(
                    status=DispatchStatus.SENT,
                    notification_type=type_value,
                    recipient_id=recipient_id,
                    notification_id=notification_id,
                    created=1,
                )

    def _store_failed(
        self, notification_type: str, error: Exception, recipient_id: Optional[int] = None
    ) -> DispatchResult:
        self.logger.error(
            f"Failed to store {notification_type} notice: {error}",
            extra={"event": "notification.store.failed", "error_type": type(error).__name__},
        )
        return DispatchResult(
            status=DispatchStatus.STORE_FAILED,
            notification_type=notification_type,
            recipient_id=recipient_id,
            error=str(error),
        )

    def _unexpected(
        self, notification_type: str, error: Exception, recipient_id: Optional[int] = None
    ) -> DispatchResult:
        self.logger.error(
            f"Unexpected error dispatching {notification_type} notice: {error}",
            exc_info=True,
            extra={"event": "notification.failed", "error_type": type(error).__name__},
        )
        return DispatchResult(
            status=DispatchStatus.FAILED,
            notification_type=notification_type,
            recipient_id=recipient_id,
            error=str(error),
        )
