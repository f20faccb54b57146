from __future__ import annotations

import collections
import datetime
import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.model import AssignmentID, EvaluationAssignment, EvaluationID, EvaluationStatus, Evaluator, \
    StudentEvaluator, SubmissionID, TeamEvaluator, TeamID, UserID

from . import Session
from .table import evaluation_assignments


class EvaluationCreateParams(t.TypedDict, total=False):
    evaluator: t.Required[Evaluator]
    evaluated_team_id: t.Required[TeamID]
    submission_id: t.Required[SubmissionID]
    due_at: datetime.datetime | None


def _to_model(row: t.Mapping[str, t.Any]) -> EvaluationAssignment:
    d = dict(row)
    student_id = d.pop("evaluator_student_id")
    team_id = d.pop("evaluator_team_id")
    evaluator = StudentEvaluator(user_id=student_id) if student_id is not None else TeamEvaluator(team_id=team_id)
    return EvaluationAssignment(**d, evaluator=evaluator)


def _evaluator_clause(evaluator: Evaluator) -> sqla.ColumnElement[bool]:
    match evaluator:
        case StudentEvaluator(user_id=user_id):
            return evaluation_assignments.evaluator_student_id == user_id
        case TeamEvaluator(team_id=team_id):
            return evaluation_assignments.evaluator_team_id == team_id


def get(
    evaluation_id: EvaluationID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationAssignment | None:
    stmt = sqla.select(evaluation_assignments.__table__).where(evaluation_assignments.evaluation_id == evaluation_id)
    row = session.execute(stmt).mappings().one_or_none()
    return _to_model(row) if row else None


def find(
    *,
    assignment_id: AssignmentID | None = None,
    evaluator: Evaluator | None = None,
    evaluated_team_id: TeamID | None = None,
    status: EvaluationStatus | t.Collection[EvaluationStatus] | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[EvaluationAssignment, ...]:
    """Find evaluation assignments, in evaluator then evaluated-team order."""
    stmt = sqla.select(evaluation_assignments.__table__).order_by(
        evaluation_assignments.evaluator_student_id,
        evaluation_assignments.evaluator_team_id,
        evaluation_assignments.evaluated_team_id,
    )
    if assignment_id is not None:
        stmt = stmt.where(evaluation_assignments.assignment_id == assignment_id)
    if evaluator is not None:
        stmt = stmt.where(_evaluator_clause(evaluator))
    if evaluated_team_id is not None:
        stmt = stmt.where(evaluation_assignments.evaluated_team_id == evaluated_team_id)
    if isinstance(status, EvaluationStatus):
        stmt = stmt.where(evaluation_assignments.status == status.value)
    elif status is not None:
        stmt = stmt.where(evaluation_assignments.status.in_([s.value for s in status]))
    rows = session.execute(stmt).mappings().all()
    return tuple(_to_model(row) for row in rows)


def find_for_investor(
    *,
    assignment_id: AssignmentID,
    student_id: UserID,
    team_id: TeamID | None,
    evaluated_team_id: TeamID,
    session: Session = di.Provide["storage.persistent.session"],
) -> EvaluationAssignment | None:
    """The evaluation through which a student may invest in a team.

    Matches the student's own assignment in student mode, or their team's
    assignment in team mode.
    """
    evaluator = evaluation_assignments.evaluator_student_id == student_id
    if team_id is not None:
        evaluator = evaluator | (evaluation_assignments.evaluator_team_id == team_id)
    stmt = (
        sqla
        .select(evaluation_assignments.__table__)
        .where(evaluation_assignments.assignment_id == assignment_id)
        .where(evaluation_assignments.evaluated_team_id == evaluated_team_id)
        .where(evaluator)
        .order_by(evaluation_assignments.evaluator_student_id.is_(None))
    )
    row = session.execute(stmt).mappings().first()
    return _to_model(row) if row else None


def replace_for_assignment(
    assignment_id: AssignmentID,
    params: t.Sequence[EvaluationCreateParams],
    *,
    status: EvaluationStatus = EvaluationStatus.Assigned,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[EvaluationAssignment, ...]:
    """Delete every evaluation assignment of the assignment and insert the new batch."""
    session.execute(sqla.delete(evaluation_assignments).where(evaluation_assignments.assignment_id == assignment_id))

    values: list[dict[str, t.Any]] = []
    for p in params:
        evaluator = p["evaluator"]
        values.append({
            "evaluation_id": EvaluationID(),
            "assignment_id": assignment_id,
            "evaluator_student_id": evaluator.user_id if isinstance(evaluator, StudentEvaluator) else None,
            "evaluator_team_id": evaluator.team_id if isinstance(evaluator, TeamEvaluator) else None,
            "evaluated_team_id": p["evaluated_team_id"],
            "submission_id": p["submission_id"],
            "status": status.value,
            "due_at": p.get("due_at"),
        })
    if values:
        session.execute(sqla.insert(evaluation_assignments), values)
    session.flush()
    return find(assignment_id=assignment_id, session=session)


def count(
    *,
    assignment_id: AssignmentID,
    session: Session = di.Provide["storage.persistent.session"],
) -> int:
    stmt = (
        sqla
        .select(sqla.func.count())
        .select_from(evaluation_assignments)
        .where(evaluation_assignments.assignment_id == assignment_id)
    )
    return session.execute(stmt).scalar_one()


def count_by_status(
    *,
    assignment_id: AssignmentID,
    session: Session = di.Provide["storage.persistent.session"],
) -> dict[EvaluationStatus, int]:
    stmt = (
        sqla
        .select(evaluation_assignments.status, sqla.func.count())
        .where(evaluation_assignments.assignment_id == assignment_id)
        .group_by(evaluation_assignments.status)
    )
    counts: dict[EvaluationStatus, int] = collections.Counter()
    for status, n in session.execute(stmt).all():
        counts[EvaluationStatus(status)] = n
    return {s: counts[s] for s in EvaluationStatus}


def mark_completed(
    evaluation_id: EvaluationID,
    *,
    completed_at: datetime.datetime,
    late: bool = False,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Mark an evaluation done.

    Raises:
        KeyError: If evaluation_id does not correspond to an evaluation assignment
    """
    status = EvaluationStatus.Late if late else EvaluationStatus.Completed
    stmt = (
        sqla
        .update(evaluation_assignments)
        .where(evaluation_assignments.evaluation_id == evaluation_id)
        .values(status=status.value, completed_at=completed_at)
    )
    result = session.execute(stmt)
    if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
        raise KeyError(f"Evaluation {evaluation_id} not found")
    session.flush()


def mark_missed(
    *,
    assignment_id: AssignmentID,
    due_before: datetime.datetime,
    session: Session = di.Provide["storage.persistent.session"],
) -> int:
    """Mark the assignment's still-open evaluations that fell due before the cutoff as missed."""
    stmt = (
        sqla
        .update(evaluation_assignments)
        .where(evaluation_assignments.assignment_id == assignment_id)
        .where(evaluation_assignments.status == EvaluationStatus.Assigned.value)
        .where(evaluation_assignments.due_at.is_not(None))
        .where(evaluation_assignments.due_at < due_before)
        .values(status=EvaluationStatus.Missed.value)
    )
    result = session.execute(stmt)
    session.flush()
    return result.rowcount  # pyright: ignore[reportAttributeAccessIssue, reportUnknownVariableType]


def delete(
    evaluation_ids: t.Collection[EvaluationID],
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> int:
    if not evaluation_ids:
        return 0
    stmt = sqla.delete(evaluation_assignments).where(evaluation_assignments.evaluation_id.in_(evaluation_ids))
    result = session.execute(stmt)
    session.flush()
    return result.rowcount  # pyright: ignore[reportAttributeAccessIssue, reportUnknownVariableType]
