"""Interest earned by investors on the teams they funded."""

from __future__ import annotations

import decimal
import logging

from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.model import AssignmentID, InterestSummary, Tier, UserID
from tycoon.storage import grade as grade_storage
from tycoon.storage import interest as interest_storage
from tycoon.storage import investment as investment_storage
from tycoon.storage import Session
from tycoon.storage.interest import InterestCreateParams

logger = logging.getLogger(__name__)

CENTS = decimal.Decimal("0.01")


def apply(
    student_id: UserID,
    assignment_id: AssignmentID,
    *,
    session: Session,
    config: EngineSettings,
) -> decimal.Decimal:
    """Recompute the student's interest records within the caller's transaction."""
    grades = {g.team_id: g for g in grade_storage.find(assignment_id=assignment_id, session=session)}
    params: list[InterestCreateParams] = []
    for inv in investment_storage.find(assignment_id=assignment_id, investor_id=student_id, session=session):
        grade = grades.get(inv.team_id)
        tier = grade.tier if grade is not None else Tier.Incomplete
        earned = (decimal.Decimal(inv.tokens) * config.interest.rates[tier]).quantize(CENTS)
        params.append({
            "team_id": inv.team_id,
            "tokens_invested": inv.tokens,
            "tier": tier,
            "interest_earned": earned,
        })
    interest_storage.replace(student_id=student_id, assignment_id=assignment_id, params=params, session=session)

    total = sum((p["interest_earned"] for p in params), decimal.Decimal("0.00"))
    logger.debug(
        "calculated interest",
        extra={
            "student_id": student_id,
            "assignment_id": assignment_id,
            "investments": len(params),
            "total": total,
        },
    )
    return total


def calculate_interest(
    student_id: UserID,
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> decimal.Decimal:
    """Interest the student earned on one assignment, persisted per team funded."""
    with session.begin():
        return apply(student_id, assignment_id, session=session, config=config)


def total_student_interest(
    student_id: UserID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> InterestSummary:
    """Roll up the student's interest across all assignments into a capped bonus."""
    with session.begin():
        total = interest_storage.total(student_id=student_id, session=session)
    cap = config.interest.bonus_cap
    bonus = min(total / config.interest.bonus_divisor, cap)
    return InterestSummary(
        student_id=student_id,
        total_interest=total,
        bonus_fraction=bonus,
        max_bonus_percent=int(cap * 100),
    )
