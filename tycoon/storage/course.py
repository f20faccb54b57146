from __future__ import annotations

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.model import Course, CourseID, Enrollment, EnrollmentRole, EnrollmentStatus, UserID

from . import Session
from .table import course_enrollments, courses


def get(
    course_id: CourseID | None = None,
    *,
    code: str | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Course | None:
    """Get a course by ID or by its unique code."""
    if course_id is not None:
        stmt = sqla.select(courses.__table__).where(courses.course_id == course_id)
    elif code is not None:
        stmt = sqla.select(courses.__table__).where(courses.code == code)
    else:
        raise ValueError("exactly one of course_id or code must be provided")

    row = session.execute(stmt).mappings().one_or_none()
    return Course(**row) if row else None


def create(
    *,
    title: str,
    code: str,
    session: Session = di.Provide["storage.persistent.session"],
) -> Course:
    course_id = CourseID()
    session.execute(sqla.insert(courses).values(course_id=course_id, title=title, code=code))
    session.flush()
    result = get(course_id, session=session)
    assert result is not None
    return result


def enroll(
    course_id: CourseID,
    user_id: UserID,
    *,
    role: EnrollmentRole = EnrollmentRole.Student,
    session: Session = di.Provide["storage.persistent.session"],
) -> Enrollment:
    """Enroll a user, or reactivate an existing enrollment with the given role."""
    where = (course_enrollments.course_id == course_id) & (course_enrollments.user_id == user_id)
    existing = session.execute(sqla.select(course_enrollments.__table__).where(where)).mappings().one_or_none()
    if existing is None:
        stmt = sqla.insert(course_enrollments).values(
            course_id=course_id,
            user_id=user_id,
            role=role.value,
            status=EnrollmentStatus.Active.value,
        )
    else:
        stmt = (
            sqla
            .update(course_enrollments)
            .where(where)
            .values(role=role.value, status=EnrollmentStatus.Active.value)
        )
    session.execute(stmt)
    session.flush()

    row = session.execute(sqla.select(course_enrollments.__table__).where(where)).mappings().one()
    return Enrollment(**row)


def withdraw(
    course_id: CourseID,
    user_id: UserID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Mark an enrollment inactive.

    Raises:
        KeyError: If the user is not enrolled in the course
    """
    stmt = (
        sqla
        .update(course_enrollments)
        .where((course_enrollments.course_id == course_id) & (course_enrollments.user_id == user_id))
        .values(status=EnrollmentStatus.Inactive.value)
    )
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"{user_id} is not enrolled in {course_id}")
    session.flush()


def find_enrollments(
    course_id: CourseID,
    *,
    role: EnrollmentRole | None = None,
    status: EnrollmentStatus | None = EnrollmentStatus.Active,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Enrollment, ...]:
    stmt = (
        sqla
        .select(course_enrollments.__table__)
        .where(course_enrollments.course_id == course_id)
        .order_by(course_enrollments.user_id)
    )
    if role is not None:
        stmt = stmt.where(course_enrollments.role == role.value)
    if status is not None:
        stmt = stmt.where(course_enrollments.status == status.value)
    rows = session.execute(stmt).mappings().all()
    return tuple(Enrollment(**row) for row in rows)


def active_students(
    course_id: CourseID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[UserID, ...]:
    """IDs of the course's actively enrolled students, in stable order."""
    enrollments = find_enrollments(course_id, role=EnrollmentRole.Student, session=session)
    return tuple(e.user_id for e in enrollments)
