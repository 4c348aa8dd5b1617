"""Tests for Jinja2 email template rendering."""

import pytest

from campus_notify.notifications.models import EmailError, NotificationTemplateError, RenderedEmail
from campus_notify.notifications.templates import (
    ATTENDANCE_ALERT,
    FEE_REMINDER,
    GENERIC,
    GRADE_UPDATE,
    TEMPLATE_KEYS,
    TemplateRenderer,
)


@pytest.fixture
def renderer():
    return TemplateRenderer()


def test_grade_update(renderer):
    rendered = renderer.render(
        GRADE_UPDATE, {"student_name": "Ada Lovelace", "course_name": "Math", "grade": "A"}
    )

    assert isinstance(rendered, RenderedEmail)
    assert rendered.subject == "Grade Update - Math"
    assert "Dear Ada Lovelace," in rendered.text_body
    assert "Grade: A" in rendered.text_body
    assert "<strong>Grade: A</strong>" in rendered.html_body


def test_attendance_alert(renderer):
    rendered = renderer.render(
        ATTENDANCE_ALERT,
        {"student_name": "Ada", "attendance_percentage": 72.5, "absences": 9},
    )

    assert rendered.subject == "Attendance Alert"
    assert "currently 72.5%" in rendered.text_body
    assert "Number of absences: 9" in rendered.text_body
    assert "Academic Department" in rendered.html_body


def test_fee_reminder(renderer):
    rendered = renderer.render(
        FEE_REMINDER, {"student_name": "Ada", "amount": "150.00", "due_date": "2025-12-01"}
    )

    assert rendered.subject == "Fee Payment Reminder"
    assert "amounting to $150.00" in rendered.text_body
    assert "Due Date: 2025-12-01" in rendered.html_body


def test_generic_uses_caller_subject(renderer):
    rendered = renderer.render(GENERIC, {"subject": "Library closed", "message": "Back Monday"})

    assert rendered.subject == "Library closed"
    assert rendered.text_body.startswith("Back Monday")


def test_subject_is_single_line(renderer):
    rendered = renderer.render(GENERIC, {"subject": "  Multi\nline\r\n subject ", "message": "x"})

    assert rendered.subject == "Multi line subject"


def test_html_body_is_escaped_text_body_is_not(renderer):
    context = {"student_name": "<b>Eve</b>", "course_name": "A&B", "grade": "A"}

    rendered = renderer.render(GRADE_UPDATE, context)

    assert "&lt;b&gt;Eve&lt;/b&gt;" in rendered.html_body
    assert "<b>Eve</b>" not in rendered.html_body
    assert "Dear <b>Eve</b>," in rendered.text_body


def test_missing_variable_raises(renderer):
    with pytest.raises(NotificationTemplateError, match="grade_update"):
        renderer.render(GRADE_UPDATE, {"student_name": "Ada", "course_name": "Math"})


def test_unknown_template_raises(renderer):
    with pytest.raises(NotificationTemplateError):
        renderer.render("no_such_kind", {})


def test_template_error_is_email_error():
    assert issubclass(NotificationTemplateError, EmailError)


@pytest.mark.parametrize("template_key", TEMPLATE_KEYS)
def test_every_kind_has_all_three_templates(renderer, template_key):
    for suffix in ("_subject.j2", "_body.txt.j2", "_body.html.j2"):
        assert renderer.env.get_template(f"{template_key}{suffix}") is not None
