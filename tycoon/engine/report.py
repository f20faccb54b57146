"""Read-only views over an evaluation round."""

from __future__ import annotations

import decimal
import typing as t

from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.model import AssignmentID, BaseModel, EvaluationStatus, GradeStatistics, StudentEvaluator, Tier, \
    TeamEvaluator, UserID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import evaluation as evaluation_storage
from tycoon.storage import grade as grade_storage
from tycoon.storage import investment as investment_storage
from tycoon.storage import Session
from tycoon.storage import team as team_storage

from .errors import NotFound

DONE = frozenset({EvaluationStatus.Completed, EvaluationStatus.Late})


class InvestorProgress(BaseModel):
    student_id: UserID
    assigned: int
    completed: int
    investments: int
    tokens_spent: int
    tokens_remaining: int

    @property
    def is_done(self) -> bool:
        return self.assigned > 0 and self.completed >= self.assigned


def evaluation_progress(
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> tuple[InvestorProgress, ...]:
    """Per-student progress through the round.

    In team mode each member of an evaluating team is credited with the
    team's evaluations.
    """
    with session.begin():
        assignment = assignment_storage.get(assignment_id, session=session)
        if assignment is None:
            raise NotFound("assignment not found", assignment_id=assignment_id)
        evaluations = evaluation_storage.find(assignment_id=assignment_id, session=session)
        investments = investment_storage.find(assignment_id=assignment_id, session=session)
        teams = {team.team_id: team for team in team_storage.find(course_id=assignment.course_id, session=session)}

    assigned: dict[UserID, int] = {}
    completed: dict[UserID, int] = {}
    for ev in evaluations:
        match ev.evaluator:
            case StudentEvaluator(user_id=user_id):
                students: t.Iterable[UserID] = (user_id,)
            case TeamEvaluator(team_id=team_id):
                students = teams[team_id].members if team_id in teams else ()
        for student in students:
            assigned[student] = assigned.get(student, 0) + 1
            if ev.status in DONE:
                completed[student] = completed.get(student, 0) + 1

    spent: dict[UserID, list[int]] = {}
    for inv in investments:
        spent.setdefault(inv.investor_id, []).append(inv.tokens)

    return tuple(
        InvestorProgress(
            student_id=student,
            assigned=assigned.get(student, 0),
            completed=completed.get(student, 0),
            investments=len(spent.get(student, ())),
            tokens_spent=sum(spent.get(student, ())),
            tokens_remaining=config.ledger.token_budget - sum(spent.get(student, ())),
        )
        for student in sorted(assigned.keys() | spent.keys())
    )


def grade_statistics(
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> GradeStatistics:
    with session.begin():
        grades = grade_storage.find(assignment_id=assignment_id, session=session)

    counts = {tier: sum(1 for g in grades if g.tier is tier) for tier in Tier}
    mean = (
        (sum((g.trimmed_mean for g in grades), decimal.Decimal(0)) / len(grades)).quantize(decimal.Decimal("0.01"))
        if grades
        else decimal.Decimal("0.00")
    )
    return GradeStatistics(
        total_teams=len(grades),
        high=counts[Tier.High],
        median=counts[Tier.Median],
        low=counts[Tier.Low],
        incomplete=counts[Tier.Incomplete],
        mean_investment=mean,
        total_investments=sum(g.total_investments for g in grades),
    )
