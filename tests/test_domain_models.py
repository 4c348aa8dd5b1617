"""Unit tests for domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from campus_notify.domain.models import Notification, NotificationType, Recipient
from campus_notify.notifications.models import DispatchResult, DispatchStatus


def make_notification(**overrides):
    fields = {
        "id": 1,
        "recipient_id": 10,
        "type": "grade_update",
        "title": "Grade Updated",
        "message": "Your grade for Math has been updated to A",
        "created_at": datetime(2025, 11, 4, 10, 0, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Notification(**fields)


class TestNotification:
    def test_defaults(self):
        notification = make_notification()

        assert notification.is_read is False
        assert notification.data is None
        assert notification.sender_id is None

    def test_naive_created_at_is_utc(self):
        notification = make_notification(created_at=datetime(2025, 11, 4, 10, 0))

        assert notification.created_at.tzinfo == timezone.utc

    def test_offset_created_at_is_converted(self):
        plus_two = timezone(timedelta(hours=2))

        notification = make_notification(created_at=datetime(2025, 11, 4, 12, 0, tzinfo=plus_two))

        assert notification.created_at == datetime(2025, 11, 4, 10, 0, tzinfo=timezone.utc)

    def test_is_frozen(self):
        notification = make_notification()

        with pytest.raises(ValidationError):
            notification.is_read = True

    def test_empty_type_rejected(self):
        with pytest.raises(ValidationError):
            make_notification(type="")

    def test_custom_type_allowed(self):
        assert make_notification(type="library_notice").type == "library_notice"


class TestNotificationType:
    def test_values(self):
        assert [t.value for t in NotificationType] == [
            "grade_update",
            "attendance_alert",
            "fee_reminder",
            "timetable_update",
            "announcement",
        ]

    def test_compares_equal_to_string(self):
        assert NotificationType.FEE_REMINDER == "fee_reminder"


class TestRecipient:
    def test_display_name_whitespace_collapsed(self):
        recipient = Recipient(recipient_id=1, display_name="  Ada   Lovelace ")

        assert recipient.display_name == "Ada Lovelace"

    @pytest.mark.parametrize("email", [None, "", "   "])
    def test_blank_email_is_none(self, email):
        assert Recipient(recipient_id=1, display_name="Ada", email=email).email is None

    def test_email_is_stripped(self):
        assert Recipient(recipient_id=1, display_name="Ada", email=" s@example.com ").email == "s@example.com"


class TestDispatchResult:
    @pytest.mark.parametrize(
        "status,success",
        [
            (DispatchStatus.SENT, True),
            (DispatchStatus.STORED, True),
            (DispatchStatus.RECIPIENT_NOT_FOUND, False),
            (DispatchStatus.STORE_FAILED, False),
            (DispatchStatus.EMAIL_FAILED, False),
            (DispatchStatus.FAILED, False),
        ],
    )
    def test_is_success(self, status, success):
        assert DispatchResult(status=status, notification_type="grade_update").is_success() is success

    def test_is_stored(self):
        stored = DispatchResult(DispatchStatus.EMAIL_FAILED, "grade_update", created=1)
        not_stored = DispatchResult(DispatchStatus.STORE_FAILED, "grade_update")

        assert stored.is_stored() is True
        assert not_stored.is_stored() is False
