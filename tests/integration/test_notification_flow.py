"""Integration tests for the notification flow.

Real NotificationStore on in-memory SQLite, real SqlRecipientDirectory reading
users/students tables, real EmailDispatcher and templates. Only the mail
transport is faked.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy import text

from campus_notify.directory import SqlRecipientDirectory
from campus_notify.notifications import (
    DispatchStatus,
    EmailDispatcher,
    EmailError,
    NotificationCoordinator,
)
from campus_notify.persistence import NotificationStore, close_database, get_session, init_database
from campus_notify.retention import RetentionSweeper


class RecordingTransport:
    """MailTransport that keeps every message and can be told to fail."""

    def __init__(self):
        self.messages = []
        self.fail_with = None

    def send_mail(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.messages.append(message)


@pytest.fixture
def now():
    return [datetime(2025, 11, 4, 8, 0, tzinfo=timezone.utc)]


@pytest.fixture
def school_db():
    init_database("sqlite:///:memory:")
    with get_session() as session:
        session.execute(
            text("CREATE TABLE users (id INTEGER PRIMARY KEY, first_name TEXT, last_name TEXT, email TEXT)")
        )
        session.execute(text("CREATE TABLE students (id INTEGER PRIMARY KEY, user_id INTEGER)"))
        session.execute(
            text("INSERT INTO users VALUES (100, 'Ada', 'Lovelace', 's@example.com')")
        )
        session.execute(text("INSERT INTO students VALUES (10, 100)"))
    yield
    close_database()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def store(now):
    return NotificationStore(clock=lambda: now[0])


@pytest.fixture
def coordinator(school_db, store, transport):
    dispatcher = EmailDispatcher(transport, sender="Campus Notifications <noreply@example.com>")
    return NotificationCoordinator(
        store=store,
        dispatcher=dispatcher,
        directory=SqlRecipientDirectory(),
        sweeper=RetentionSweeper(store),
    )


def test_grade_update_is_stored_and_emailed(coordinator, transport):
    result = coordinator.notify_grade_update(10, "Math", "A")

    assert result.status == DispatchStatus.SENT
    (notification,) = coordinator.get_user_notifications(100)
    assert notification.id == result.notification_id
    assert notification.type == "grade_update"
    assert notification.title == "Grade Updated"
    assert notification.message == "Your grade for Math has been updated to A"
    assert notification.data == {"courseName": "Math", "grade": "A"}

    (message,) = transport.messages
    assert message["To"] == "s@example.com"
    assert message["Subject"] == "Grade Update - Math"


def test_unknown_student_changes_nothing(coordinator, transport):
    result = coordinator.notify_grade_update(99, "Math", "A")

    assert result.status == DispatchStatus.RECIPIENT_NOT_FOUND
    assert coordinator.get_user_notifications(100) == []
    assert transport.messages == []


def test_email_failure_leaves_notice_listed(coordinator, transport):
    transport.fail_with = EmailError("SMTP error during message delivery: 421")

    result = coordinator.notify_fee_reminder(10, "150.00", "2025-12-01")

    assert result.status == DispatchStatus.EMAIL_FAILED
    (notification,) = coordinator.get_user_notifications(100)
    assert notification.message == "You have outstanding fees of $150.00 due on 2025-12-01"
    assert coordinator.get_unread_count(100) == 1


def test_transport_os_error_leaves_notice_listed(coordinator, transport):
    transport.fail_with = ConnectionRefusedError("refused")

    result = coordinator.notify_attendance_alert(10, 70, 8)

    assert result.status == DispatchStatus.EMAIL_FAILED
    assert coordinator.get_unread_count(100) == 1


def test_read_tracking_round_trip(coordinator, now):
    coordinator.notify_timetable_update(100, "Room change")
    now[0] += timedelta(seconds=1)
    coordinator.notify_grade_update(10, "Art", "B")

    newest, oldest = coordinator.get_user_notifications(100)
    assert newest.type == "grade_update"
    assert oldest.type == "timetable_update"

    assert coordinator.mark_as_read(oldest.id, 100) is True
    assert coordinator.mark_as_read(oldest.id, 100) is False
    assert coordinator.mark_as_read(newest.id, 555) is False
    assert coordinator.get_unread_count(100) == 1
    assert coordinator.mark_all_as_read(100) == 1
    assert coordinator.get_unread_count(100) == 0


def test_announcement_is_atomic(coordinator):
    result = coordinator.send_announcement([1, 2, 3], "Sports Day", "It's on Friday; don't forget")
    assert result.status == DispatchStatus.STORED
    assert result.created == 3

    failed = coordinator.send_announcement([4, None, 6], "Oops", "m")
    assert failed.status == DispatchStatus.STORE_FAILED
    assert failed.created == 0
    assert coordinator.get_user_notifications(4) == []
    assert coordinator.get_user_notifications(6) == []


def test_cleanup_removes_expired_notices(coordinator, now):
    coordinator.notify_timetable_update(100, "old")
    now[0] += timedelta(days=31)
    coordinator.notify_timetable_update(100, "new")

    assert coordinator.cleanup_old_notifications() == 1
    assert [n.message for n in coordinator.get_user_notifications(100)] == ["new"]
    assert coordinator.cleanup_old_notifications() == 0


def test_store_failure_is_reported_not_raised(coordinator, transport):
    close_database()

    result = coordinator.notify_grade_update(10, "Math", "A")

    assert result.status == DispatchStatus.STORE_FAILED
    assert transport.messages == []


def test_course_announcement_reaches_every_enrolled_student(coordinator, store, transport):
    with get_session() as session:
        session.execute(text("INSERT INTO users VALUES (101, 'Bo', 'Li', 'bo@example.com')"))
        session.execute(text("INSERT INTO students VALUES (11, 101)"))
        session.execute(text("CREATE TABLE course_enrollments (student_id INTEGER, course_id INTEGER)"))
        session.execute(text("INSERT INTO course_enrollments VALUES (10, 7), (11, 7), (10, 8)"))

    result = coordinator.send_to_audience("course", 7, "Field trip", "Bring lunch", sender_id=1)

    assert result.status == DispatchStatus.STORED
    assert result.created == 2
    for user_id in (100, 101):
        (notice,) = store.list_for_recipient(user_id)
        assert notice.type == "announcement"
        assert notice.sender_id == 1
    assert transport.messages == []
