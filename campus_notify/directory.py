"""Recipient directory: resolve domain identifiers to contactable users.

The student, teacher and user tables are owned by the rest of the application;
this module only reads them. "Not found" is a normal outcome: a single lookup
reports it as None and an audience lookup as an empty list.
"""

import json
import logging
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
)

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus_notify.domain.models import Audience, Recipient
from campus_notify.persistence.database import get_session
from campus_notify.persistence.exceptions import StoreError

logger = logging.getLogger(__name__)

TEACHER_ROLE = "teacher"

STUDENT_LOOKUP_SQL = text(
    """
    SELECT u.id AS user_id, u.first_name, u.last_name, u.email
    FROM students s
    JOIN users u ON s.user_id = u.id
    WHERE s.id = :student_id
    """
)

DEPARTMENT_USERS_SQL = text(
    """
    SELECT DISTINCT u.id AS user_id, u.first_name, u.last_name, u.email
    FROM users u
    LEFT JOIN students s ON u.id = s.user_id
    LEFT JOIN teachers t ON u.id = t.user_id
    WHERE (s.department_id = :department_id OR t.department_id = :department_id)
    ORDER BY u.id
    """
)

DEPARTMENT_USERS_BY_ROLE_SQL = text(
    """
    SELECT DISTINCT u.id AS user_id, u.first_name, u.last_name, u.email
    FROM users u
    LEFT JOIN students s ON u.id = s.user_id
    LEFT JOIN teachers t ON u.id = t.user_id
    WHERE (s.department_id = :department_id OR t.department_id = :department_id)
      AND u.role = :role
    ORDER BY u.id
    """
)

DEPARTMENT_TEACHERS_SQL = text(
    """
    SELECT DISTINCT u.id AS user_id, u.first_name, u.last_name, u.email
    FROM users u
    JOIN teachers t ON u.id = t.user_id
    WHERE t.department_id = :department_id
    ORDER BY u.id
    """
)

COURSE_STUDENTS_SQL = text(
    """
    SELECT DISTINCT u.id AS user_id, u.first_name, u.last_name, u.email
    FROM users u
    JOIN students s ON u.id = s.user_id
    JOIN course_enrollments ce ON s.id = ce.student_id
    WHERE ce.course_id = :course_id
    ORDER BY u.id
    """
)

TEACHER_STUDENTS_SQL = text(
    """
    SELECT DISTINCT u.id AS user_id, u.first_name, u.last_name, u.email
    FROM users u
    JOIN students s ON u.id = s.user_id
    JOIN course_enrollments ce ON s.id = ce.student_id
    JOIN courses c ON ce.course_id = c.id
    JOIN timetable tt ON c.id = tt.course_id
    WHERE tt.teacher_id = :teacher_id
    ORDER BY u.id
    """
)

# classes.students holds a JSON array of student ids.
CLASS_ROSTER_SQL = text("SELECT students FROM classes WHERE id = :class_id")

STUDENTS_BY_ID_SQL = text(
    """
    SELECT DISTINCT u.id AS user_id, u.first_name, u.last_name, u.email
    FROM users u
    JOIN students s ON u.id = s.user_id
    WHERE s.id IN :student_ids
    ORDER BY u.id
    """
).bindparams(bindparam("student_ids", expanding=True))


class RecipientDirectory(Protocol):
    """Read-only lookup of the people behind students, teachers and groups."""

    def find_student(self, student_id: int) -> Optional[Recipient]:
        """Return the student's user contact record, or None if unknown."""
        ...

    def users_in_department(
        self, department_id: int, role: Optional[str] = None
    ) -> List[Recipient]:
        """Students and teachers of a department, optionally narrowed to one user role."""
        ...

    def teachers_in_department(self, department_id: int) -> List[Recipient]:
        ...

    def students_in_course(self, course_id: int) -> List[Recipient]:
        ...

    def students_of_teacher(self, teacher_id: int) -> List[Recipient]:
        """Students enrolled in any course the teacher has timetabled."""
        ...

    def students_in_class(self, class_id: int) -> List[Recipient]:
        ...


def resolve_audience(
    directory: RecipientDirectory,
    audience: Audience,
    group_id: int,
    role: Optional[str] = None,
) -> List[Recipient]:
    """Resolve a broadcast audience to its members.

    ``role`` only narrows department audiences.

    Raises:
        ValueError: If the audience kind is unknown or ``role`` is given for a
            non-department audience
        StoreError: If the lookup fails
    """
    audience = Audience(audience)
    if audience is Audience.DEPARTMENT:
        return directory.users_in_department(group_id, role=role)

    if role is not None:
        raise ValueError(f"role filter does not apply to {audience.value} audiences")

    lookups: Dict[Audience, Callable[[int], List[Recipient]]] = {
        Audience.DEPARTMENT_TEACHERS: directory.teachers_in_department,
        Audience.COURSE: directory.students_in_course,
        Audience.TEACHER_STUDENTS: directory.students_of_teacher,
        Audience.CLASS: directory.students_in_class,
    }
    return lookups[audience](group_id)


def _to_recipient(mapping: Mapping[str, Any]) -> Recipient:
    display_name = f"{mapping['first_name'] or ''} {mapping['last_name'] or ''}"
    return Recipient(
        recipient_id=mapping["user_id"],
        display_name=display_name,
        email=mapping["email"],
    )


def _parse_roster(raw: Any) -> List[int]:
    if raw is None:
        return []
    if isinstance(raw, (bytes, str)):
        raw = json.loads(raw)
    if not isinstance(raw, list):
        raise ValueError("class roster is not a JSON array")
    return [int(student_id) for student_id in raw]


class SqlRecipientDirectory:
    """Directory backed by the application's school tables.

    Every lookup is a parameterized statement; identifiers never reach the SQL
    text.
    """

    def __init__(self, session_scope: Optional[Callable[[], ContextManager[Session]]] = None):
        self._session_scope = session_scope or get_session

    def _fetch(self, action: str, work: Callable[[Session], Any]) -> Any:
        try:
            with self._session_scope() as session:
                return work(session)
        except StoreError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error trying to {action}: {e}", exc_info=True)
            raise StoreError(f"Failed to {action}: {e}") from e

    def _audience(self, action: str, statement, params: Dict[str, Any]) -> List[Recipient]:
        rows = self._fetch(action, lambda session: session.execute(statement, params).all())
        return [_to_recipient(row._mapping) for row in rows]

    def find_student(self, student_id: int) -> Optional[Recipient]:
        """Resolve a student id through a parameterized join.

        Raises:
            StoreError: If the lookup query fails
        """
        row = self._fetch(
            f"resolve student {student_id}",
            lambda session: session.execute(
                STUDENT_LOOKUP_SQL, {"student_id": student_id}
            ).first(),
        )
        if row is None:
            return None
        return _to_recipient(row._mapping)

    def users_in_department(
        self, department_id: int, role: Optional[str] = None
    ) -> List[Recipient]:
        action = f"resolve department {department_id} audience"
        if role is None:
            return self._audience(action, DEPARTMENT_USERS_SQL, {"department_id": department_id})
        return self._audience(
            action, DEPARTMENT_USERS_BY_ROLE_SQL, {"department_id": department_id, "role": role}
        )

    def teachers_in_department(self, department_id: int) -> List[Recipient]:
        return self._audience(
            f"resolve department {department_id} teachers",
            DEPARTMENT_TEACHERS_SQL,
            {"department_id": department_id},
        )

    def students_in_course(self, course_id: int) -> List[Recipient]:
        return self._audience(
            f"resolve course {course_id} audience", COURSE_STUDENTS_SQL, {"course_id": course_id}
        )

    def students_of_teacher(self, teacher_id: int) -> List[Recipient]:
        return self._audience(
            f"resolve students of teacher {teacher_id}",
            TEACHER_STUDENTS_SQL,
            {"teacher_id": teacher_id},
        )

    def students_in_class(self, class_id: int) -> List[Recipient]:
        """Resolve the class roster, then its students, in one session.

        Raises:
            StoreError: If a query fails or the stored roster is malformed
        """
        action = f"resolve class {class_id} audience"

        def work(session: Session) -> List[Any]:
            raw = session.execute(CLASS_ROSTER_SQL, {"class_id": class_id}).scalar()
            try:
                student_ids = _parse_roster(raw)
            except (TypeError, ValueError) as e:
                raise StoreError(f"Failed to {action}: {e}") from e
            if not student_ids:
                return []
            return session.execute(STUDENTS_BY_ID_SQL, {"student_ids": student_ids}).all()

        return [_to_recipient(row._mapping) for row in self._fetch(action, work)]


class InMemoryRecipientDirectory:
    """Directory backed by plain mappings. Used by tests and local wiring."""

    def __init__(self, students: Optional[Mapping[int, Recipient]] = None):
        self._students: Dict[int, Recipient] = dict(students or {})
        self._departments: Dict[int, List[Tuple[Recipient, Optional[str]]]] = {}
        self._courses: Dict[int, List[Recipient]] = {}
        self._teacher_students: Dict[int, List[Recipient]] = {}
        self._classes: Dict[int, List[Recipient]] = {}

    def add_student(self, student_id: int, recipient: Recipient) -> None:
        self._students[student_id] = recipient

    def add_department_member(
        self, department_id: int, recipient: Recipient, role: Optional[str] = None
    ) -> None:
        self._departments.setdefault(department_id, []).append((recipient, role))

    def add_course_student(self, course_id: int, recipient: Recipient) -> None:
        self._courses.setdefault(course_id, []).append(recipient)

    def add_teacher_student(self, teacher_id: int, recipient: Recipient) -> None:
        self._teacher_students.setdefault(teacher_id, []).append(recipient)

    def add_class_student(self, class_id: int, recipient: Recipient) -> None:
        self._classes.setdefault(class_id, []).append(recipient)

    def find_student(self, student_id: int) -> Optional[Recipient]:
        return self._students.get(student_id)

    def users_in_department(
        self, department_id: int, role: Optional[str] = None
    ) -> List[Recipient]:
        members = self._departments.get(department_id, [])
        return _distinct(r for r, member_role in members if role is None or member_role == role)

    def teachers_in_department(self, department_id: int) -> List[Recipient]:
        return self.users_in_department(department_id, role=TEACHER_ROLE)

    def students_in_course(self, course_id: int) -> List[Recipient]:
        return _distinct(self._courses.get(course_id, []))

    def students_of_teacher(self, teacher_id: int) -> List[Recipient]:
        return _distinct(self._teacher_students.get(teacher_id, []))

    def students_in_class(self, class_id: int) -> List[Recipient]:
        return _distinct(self._classes.get(class_id, []))


def _distinct(recipients: Iterable[Recipient]) -> List[Recipient]:
    # Same shape as the SQL lookups: one entry per user, ordered by user id.
    unique: Dict[int, Recipient] = {}
    for recipient in recipients:
        unique.setdefault(recipient.recipient_id, recipient)
    return [unique[key] for key in sorted(unique)]
