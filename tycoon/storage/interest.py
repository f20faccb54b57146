from __future__ import annotations

import decimal
import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.model import AssignmentID, InterestRecord, InterestRecordID, TeamID, Tier, UserID

from . import Session
from .table import interest_records


class InterestCreateParams(t.TypedDict):
    team_id: TeamID
    tokens_invested: int
    tier: Tier
    interest_earned: decimal.Decimal


def find(
    *,
    student_id: UserID | None = None,
    assignment_id: AssignmentID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[InterestRecord, ...]:
    stmt = sqla.select(interest_records.__table__).order_by(
        interest_records.student_id, interest_records.assignment_id, interest_records.team_id
    )
    if student_id is not None:
        stmt = stmt.where(interest_records.student_id == student_id)
    if assignment_id is not None:
        stmt = stmt.where(interest_records.assignment_id == assignment_id)
    rows = session.execute(stmt).mappings().all()
    return tuple(InterestRecord(**row) for row in rows)


def replace(
    *,
    student_id: UserID,
    assignment_id: AssignmentID,
    params: t.Sequence[InterestCreateParams],
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[InterestRecord, ...]:
    """Swap the student's interest records for the assignment with a new set."""
    session.execute(
        sqla
        .delete(interest_records)
        .where(interest_records.student_id == student_id)
        .where(interest_records.assignment_id == assignment_id)
    )
    values = [
        {
            "interest_id": InterestRecordID(),
            "student_id": student_id,
            "assignment_id": assignment_id,
            "team_id": p["team_id"],
            "tokens_invested": p["tokens_invested"],
            "tier": p["tier"].value,
            "interest_earned": p["interest_earned"],
        }
        for p in params
    ]
    if values:
        session.execute(sqla.insert(interest_records), values)
    session.flush()
    return find(student_id=student_id, assignment_id=assignment_id, session=session)


def total(
    *,
    student_id: UserID,
    session: Session = di.Provide["storage.persistent.session"],
) -> decimal.Decimal:
    """Sum of everything the student has earned, across assignments."""
    stmt = sqla.select(sqla.func.coalesce(sqla.func.sum(interest_records.interest_earned), 0)).where(
        interest_records.student_id == student_id
    )
    value = session.execute(stmt).scalar_one()
    return decimal.Decimal(value).quantize(decimal.Decimal("0.01"))
