from __future__ import annotations

import datetime
import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.lib import NotSet
from tycoon.model import Assignment, AssignmentID, CourseID, DistributionMode

from . import Session
from .table import assignments


def get(
    assignment_id: AssignmentID,
    *,
    for_update: bool = False,
    session: Session = di.Provide["storage.persistent.session"],
) -> Assignment | None:
    """Get an assignment by ID."""
    stmt = sqla.select(assignments.__table__).where(assignments.assignment_id == assignment_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = session.execute(stmt).mappings().one_or_none()
    return Assignment(**row) if row else None


def find(
    *,
    course_id: CourseID | None = None,
    is_evaluation_active: bool | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Assignment, ...]:
    stmt = sqla.select(assignments.__table__).order_by(assignments.create_time, assignments.assignment_id)
    if course_id is not None:
        stmt = stmt.where(assignments.course_id == course_id)
    if is_evaluation_active is not None:
        stmt = stmt.where(assignments.is_evaluation_active == is_evaluation_active)
    rows = session.execute(stmt).mappings().all()
    return tuple(Assignment(**row) for row in rows)


def create(
    *,
    course_id: CourseID,
    title: str,
    due_at: datetime.datetime | None = None,
    distribution_mode: DistributionMode = DistributionMode.Student,
    session: Session = di.Provide["storage.persistent.session"],
) -> Assignment:
    assignment_id = AssignmentID()
    stmt = sqla.insert(assignments).values(
        assignment_id=assignment_id,
        course_id=course_id,
        title=title,
        due_at=due_at,
        distribution_mode=distribution_mode.value,
    )
    session.execute(stmt)
    session.flush()
    result = get(assignment_id, session=session)
    assert result is not None
    return result


def update(
    assignment_id: AssignmentID,
    *,
    title: str | NotSet = NotSet(),
    due_at: datetime.datetime | None | NotSet = NotSet(),
    is_evaluation_active: bool | NotSet = NotSet(),
    evaluation_start_at: datetime.datetime | None | NotSet = NotSet(),
    evaluation_due_at: datetime.datetime | None | NotSet = NotSet(),
    distribution_mode: DistributionMode | NotSet = NotSet(),
    evaluations_per_evaluator: int | None | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update an assignment.

    Uses NotSet sentinel for parameters where None may be a valid value.
    Call get() after if you need the updated entity.

    Raises:
        KeyError: If assignment_id does not correspond to an assignment
    """
    values: dict[str, t.Any] = {}
    if not isinstance(title, NotSet):
        values["title"] = title
    if not isinstance(due_at, NotSet):
        values["due_at"] = due_at
    if not isinstance(is_evaluation_active, NotSet):
        values["is_evaluation_active"] = is_evaluation_active
    if not isinstance(evaluation_start_at, NotSet):
        values["evaluation_start_at"] = evaluation_start_at
    if not isinstance(evaluation_due_at, NotSet):
        values["evaluation_due_at"] = evaluation_due_at
    if not isinstance(distribution_mode, NotSet):
        values["distribution_mode"] = distribution_mode.value
    if not isinstance(evaluations_per_evaluator, NotSet):
        values["evaluations_per_evaluator"] = evaluations_per_evaluator

    if not values:
        # no-op update to verify the assignment exists
        values["assignment_id"] = assignment_id

    stmt = sqla.update(assignments).where(assignments.assignment_id == assignment_id).values(**values)
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Assignment {assignment_id} not found")

    session.flush()
