"""Turning investments into grades.

Each submitted team's received tokens are trimmed (one lowest and one
highest dropped once there are more than two), averaged, and tiered. A
single incomplete flag, or no investment at all, makes the team incomplete.
"""

from __future__ import annotations

import decimal
import logging
import typing as t

from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.model import AssignmentID, Grade, Investment, SubmissionStatus, TeamID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import grade as grade_storage
from tycoon.storage import investment as investment_storage
from tycoon.storage import Session
from tycoon.storage import submission as submission_storage
from tycoon.storage.grade import GradeCreateParams

from . import interest
from .errors import NotFound
from .tiering import strategy_for

logger = logging.getLogger(__name__)

CENTS = decimal.Decimal("0.01")


def trimmed_mean(tokens: t.Iterable[int]) -> decimal.Decimal:
    """Mean after dropping one minimum and one maximum; untrimmed for two values or fewer."""
    values = sorted(tokens)
    if not values:
        raise ValueError("no values to average")
    if len(values) > 2:
        values = values[1:-1]
    return decimal.Decimal(sum(values)) / decimal.Decimal(len(values))


def team_mean(investments: t.Sequence[Investment]) -> decimal.Decimal | None:
    """The team's trimmed mean, or None if the team is incomplete."""
    if not investments or any(inv.is_incomplete for inv in investments):
        return None
    return trimmed_mean(inv.tokens for inv in investments)


def grade_assignment(
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> tuple[Grade, ...]:
    """Recompute every grade of the assignment, then everyone's interest.

    Existing grades are replaced by drafts, so overrides and publication are
    discarded. Returns the grades ordered by descending trimmed mean.

    Raises:
        NotFound: If the assignment does not exist
    """
    with session.begin():
        if assignment_storage.get(assignment_id, session=session) is None:
            raise NotFound("assignment not found", assignment_id=assignment_id)

        submissions = submission_storage.find(
            assignment_id=assignment_id, status=SubmissionStatus.Submitted, session=session
        )
        received = investment_storage.tokens_by_team(assignment_id=assignment_id, session=session)

        means: dict[TeamID, decimal.Decimal | None] = {
            s.team_id: team_mean(received.get(s.team_id, ())) for s in submissions
        }
        strategy = strategy_for(config.grading)
        tiers = strategy.assign(means)

        params: list[GradeCreateParams] = []
        for s in submissions:
            mean = means[s.team_id]
            tier = tiers[s.team_id]
            params.append({
                "team_id": s.team_id,
                "submission_id": s.submission_id,
                "trimmed_mean": (mean or decimal.Decimal(0)).quantize(CENTS, rounding=decimal.ROUND_HALF_UP),
                "tier": tier,
                "percentage": strategy.percentage(tier),
                "total_investments": len(received.get(s.team_id, ())),
            })
        grades = grade_storage.replace_for_assignment(assignment_id, params, session=session)

        investors = investment_storage.find_investors(assignment_id=assignment_id, session=session)
        for investor_id in investors:
            interest.apply(investor_id, assignment_id, session=session, config=config)

    logger.info(
        "graded assignment",
        extra={
            "assignment_id": assignment_id,
            "policy": config.grading.tiering.value,
            "teams": len(grades),
            "tiers": {tier.value: sum(1 for g in grades if g.tier is tier) for tier in set(tiers.values())},
            "investors": len(investors),
        },
    )
    return grades
