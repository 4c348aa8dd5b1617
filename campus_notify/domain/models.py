"""Core domain models for notices and their recipients.

- NotificationType: the well-known notice kinds emitted by domain events
- Notification: one persisted notice addressed to a single recipient
- Recipient: contact record resolved from the user/student directory
- Audience: group kinds a broadcast can be addressed to
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class NotificationType(str, Enum):
    """Notice kinds produced by the coordinator.

    Callers may still store any other string as a type for generic notices.
    """

    GRADE_UPDATE = "grade_update"
    ATTENDANCE_ALERT = "attendance_alert"
    FEE_REMINDER = "fee_reminder"
    TIMETABLE_UPDATE = "timetable_update"
    ANNOUNCEMENT = "announcement"


class Audience(str, Enum):
    """Groups a broadcast notice can be fanned out to."""

    DEPARTMENT = "department"
    DEPARTMENT_TEACHERS = "department_teachers"
    COURSE = "course"
    TEACHER_STUDENTS = "teacher_students"
    CLASS = "class"


class Notification(BaseModel):
    """A persisted notice.

    Immutable once created except for ``is_read``, which only ever moves from
    False to True.
    """

    id: int = Field(..., description="Store-assigned identifier")
    recipient_id: int = Field(..., description="User the notice is addressed to")
    sender_id: Optional[int] = Field(None, description="User who issued a manual notice")
    type: str = Field(..., min_length=1, description="Notice kind (see NotificationType)")
    title: str = Field(..., description="Short headline")
    message: str = Field(..., description="Free-text body")
    data: Optional[Any] = Field(None, description="Opaque structured payload")
    is_read: bool = Field(False, description="Whether the recipient has read the notice")
    created_at: datetime = Field(..., description="When the notice was stored (UTC)")

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware and in UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    model_config = {"frozen": True, "json_schema_extra": {"example": {
        "id": 17,
        "recipient_id": 10,
        "sender_id": None,
        "type": "grade_update",
        "title": "Grade Updated",
        "message": "Your grade for Math has been updated to A",
        "data": {"courseName": "Math", "grade": "A"},
        "is_read": False,
        "created_at": "2025-11-04T10:00:00Z",
    }}}


class Recipient(BaseModel):
    """Contact details for the human behind a domain identifier."""

    recipient_id: int = Field(..., description="User id notices are addressed to")
    display_name: str = Field(..., description="Name used in email salutations")
    email: Optional[str] = Field(None, description="Address for the email channel")

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        """Collapse surrounding whitespace, e.g. from a missing last name."""
        return " ".join(v.split())

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank addresses as missing."""
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None
