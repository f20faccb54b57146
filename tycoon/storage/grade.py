from __future__ import annotations

import datetime
import decimal
import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.lib import NotSet
from tycoon.model import AssignmentID, Grade, GradeID, GradeStatus, SubmissionID, TeamID, Tier, UserID

from . import Session
from .table import grades


class GradeCreateParams(t.TypedDict):
    team_id: TeamID
    submission_id: SubmissionID
    trimmed_mean: decimal.Decimal
    tier: Tier
    percentage: int
    total_investments: int


def get(
    grade_id: GradeID | None = None,
    *,
    assignment_id: AssignmentID | None = None,
    team_id: TeamID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Grade | None:
    """Get a grade by ID, or by its (assignment_id, team_id) pair."""
    if grade_id is not None:
        stmt = sqla.select(grades.__table__).where(grades.grade_id == grade_id)
    elif assignment_id is not None and team_id is not None:
        stmt = sqla.select(grades.__table__).where(
            (grades.assignment_id == assignment_id) & (grades.team_id == team_id)
        )
    else:
        raise ValueError("provide grade_id, or both assignment_id and team_id")

    row = session.execute(stmt).mappings().one_or_none()
    return Grade(**row) if row else None


def find(
    *,
    assignment_id: AssignmentID | None = None,
    team_id: TeamID | None = None,
    grade_ids: t.Collection[GradeID] | None = None,
    published_only: bool = False,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Grade, ...]:
    """Find grades, best trimmed mean first.

    With published_only, draft grades are left out; this is what students see.
    """
    stmt = sqla.select(grades.__table__).order_by(grades.trimmed_mean.desc(), grades.team_id)
    if assignment_id is not None:
        stmt = stmt.where(grades.assignment_id == assignment_id)
    if team_id is not None:
        stmt = stmt.where(grades.team_id == team_id)
    if grade_ids is not None:
        stmt = stmt.where(grades.grade_id.in_(grade_ids))
    if published_only:
        stmt = stmt.where(grades.status == GradeStatus.Published.value)
    rows = session.execute(stmt).mappings().all()
    return tuple(Grade(**row) for row in rows)


def replace_for_assignment(
    assignment_id: AssignmentID,
    params: t.Sequence[GradeCreateParams],
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Grade, ...]:
    """Delete the assignment's grades and insert fresh drafts."""
    session.execute(sqla.delete(grades).where(grades.assignment_id == assignment_id))
    values = [
        {
            "grade_id": GradeID(),
            "assignment_id": assignment_id,
            "team_id": p["team_id"],
            "submission_id": p["submission_id"],
            "trimmed_mean": p["trimmed_mean"],
            "tier": p["tier"].value,
            "percentage": p["percentage"],
            "total_investments": p["total_investments"],
            "status": GradeStatus.Draft.value,
        }
        for p in params
    ]
    if values:
        session.execute(sqla.insert(grades), values)
    session.flush()
    return find(assignment_id=assignment_id, session=session)


def update(
    grade_id: GradeID,
    *,
    tier: Tier | NotSet = NotSet(),
    percentage: int | NotSet = NotSet(),
    manual_override: bool | NotSet = NotSet(),
    original_tier: Tier | None | NotSet = NotSet(),
    original_percentage: int | None | NotSet = NotSet(),
    admin_notes: str | None | NotSet = NotSet(),
    reviewed_by: UserID | None | NotSet = NotSet(),
    reviewed_at: datetime.datetime | None | NotSet = NotSet(),
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Update a grade.

    Uses NotSet sentinel for parameters where None may be a valid value.
    Call get() after if you need the updated entity.

    Raises:
        KeyError: If grade_id does not correspond to a grade
    """
    values: dict[str, t.Any] = {}
    if not isinstance(tier, NotSet):
        values["tier"] = tier.value
    if not isinstance(percentage, NotSet):
        values["percentage"] = percentage
    if not isinstance(manual_override, NotSet):
        values["manual_override"] = manual_override
    if not isinstance(original_tier, NotSet):
        values["original_tier"] = original_tier.value if original_tier is not None else None
    if not isinstance(original_percentage, NotSet):
        values["original_percentage"] = original_percentage
    if not isinstance(admin_notes, NotSet):
        values["admin_notes"] = admin_notes
    if not isinstance(reviewed_by, NotSet):
        values["reviewed_by"] = reviewed_by
    if not isinstance(reviewed_at, NotSet):
        values["reviewed_at"] = reviewed_at

    if not values:
        # no-op update to verify the grade exists
        values["grade_id"] = grade_id

    result = session.execute(sqla.update(grades).where(grades.grade_id == grade_id).values(**values))
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Grade {grade_id} not found")
    session.flush()


def set_status(
    grade_ids: t.Collection[GradeID],
    status: GradeStatus,
    *,
    reviewed_by: UserID | None = None,
    at: datetime.datetime | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> int:
    """Publish or unpublish grades; returns the number of grades changed."""
    values: dict[str, t.Any] = {"status": status.value}
    if status is GradeStatus.Published:
        values.update(published_at=at, reviewed_at=at, reviewed_by=reviewed_by)
    else:
        values["published_at"] = None

    stmt = (
        sqla
        .update(grades)
        .where(grades.grade_id.in_(grade_ids))
        .where(grades.status != status.value)
        .values(**values)
    )
    result = session.execute(stmt)
    session.flush()
    return result.rowcount  # pyright: ignore[reportAttributeAccessIssue, reportUnknownVariableType]
