from __future__ import annotations

import datetime
import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.model import AssignmentID, Submission, SubmissionID, SubmissionStatus, TeamID

from . import Session
from .table import submissions


def get(
    submission_id: SubmissionID | None = None,
    *,
    team_id: TeamID | None = None,
    assignment_id: AssignmentID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Submission | None:
    """Get a submission by ID, or by its (team_id, assignment_id) pair."""
    if submission_id is not None:
        stmt = sqla.select(submissions.__table__).where(submissions.submission_id == submission_id)
    elif team_id is not None and assignment_id is not None:
        stmt = sqla.select(submissions.__table__).where(
            (submissions.team_id == team_id) & (submissions.assignment_id == assignment_id)
        )
    else:
        raise ValueError("provide submission_id, or both team_id and assignment_id")

    row = session.execute(stmt).mappings().one_or_none()
    return Submission(**row) if row else None


def find(
    *,
    assignment_id: AssignmentID | None = None,
    status: SubmissionStatus | None = None,
    team_ids: t.Collection[TeamID] | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Submission, ...]:
    stmt = sqla.select(submissions.__table__).order_by(submissions.submission_id)
    if assignment_id is not None:
        stmt = stmt.where(submissions.assignment_id == assignment_id)
    if status is not None:
        stmt = stmt.where(submissions.status == status.value)
    if team_ids is not None:
        stmt = stmt.where(submissions.team_id.in_(team_ids))
    rows = session.execute(stmt).mappings().all()
    return tuple(Submission(**row) for row in rows)


def submit(
    *,
    team_id: TeamID,
    assignment_id: AssignmentID,
    submitted_at: datetime.datetime,
    primary_link: str | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Submission:
    """Record the team's submission, creating it if it does not exist yet."""
    existing = get(team_id=team_id, assignment_id=assignment_id, session=session)
    values: dict[str, t.Any] = {
        "status": SubmissionStatus.Submitted.value,
        "submitted_at": submitted_at,
    }
    if primary_link is not None:
        values["primary_link"] = primary_link

    if existing is None:
        submission_id = SubmissionID()
        stmt = sqla.insert(submissions).values(
            submission_id=submission_id, team_id=team_id, assignment_id=assignment_id, **values
        )
    else:
        submission_id = existing.submission_id
        stmt = sqla.update(submissions).where(submissions.submission_id == submission_id).values(**values)
    session.execute(stmt)
    session.flush()
    result = get(submission_id, session=session)
    assert result is not None
    return result


def create_draft(
    *,
    team_id: TeamID,
    assignment_id: AssignmentID,
    primary_link: str | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> Submission:
    submission_id = SubmissionID()
    stmt = sqla.insert(submissions).values(
        submission_id=submission_id,
        team_id=team_id,
        assignment_id=assignment_id,
        status=SubmissionStatus.Draft.value,
        primary_link=primary_link,
    )
    session.execute(stmt)
    session.flush()
    result = get(submission_id, session=session)
    assert result is not None
    return result
