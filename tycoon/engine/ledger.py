"""The investment ledger: validates and records token allocations."""

from __future__ import annotations

import datetime
import logging
import typing as t

from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.core.provider import TRACE, TimestampProvider
from tycoon.lib.lock import KeyedLock
from tycoon.model import AssignmentID, Investment, TeamID, UserID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import evaluation as evaluation_storage
from tycoon.storage import investment as investment_storage
from tycoon.storage import Session
from tycoon.storage import team as team_storage
from tycoon.storage import user as user_storage

from .errors import BudgetExceeded, CapExceeded, CommentRequired, DuplicateInvestment, LedgerError, NotAssigned, \
    NotFound, TokenAmountOutOfRange, WindowClosed

logger = logging.getLogger(__name__)

LedgerKey = tuple[UserID, AssignmentID]


def check_tokens(tokens: int, incomplete: bool, comment: str, config: EngineSettings) -> int:
    """Return the amount to record; an incomplete flag always records zero."""
    if incomplete:
        if config.ledger.require_comment_when_incomplete and not comment.strip():
            raise CommentRequired("explain why the submission is incomplete")
        return 0
    lo, hi = config.ledger.min_tokens, config.ledger.max_tokens
    if not lo <= tokens <= hi:
        raise TokenAmountOutOfRange(f"investments must be between {lo} and {hi} tokens", tokens=tokens)
    return tokens


def record_investment(
    investor_id: UserID,
    team_id: TeamID,
    assignment_id: AssignmentID,
    tokens: int,
    *,
    incomplete: bool = False,
    comment: str = "",
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
    utcnow: TimestampProvider = di.Provide["utcnow"],
    locks: KeyedLock[LedgerKey] = di.Provide["ledger_locks"],
) -> Investment:
    """Record one investment and complete the evaluation it answers.

    Checks run in a fixed order and the first failure wins: token bounds,
    assignment to the team, investment cap, token budget, duplicate, and
    finally the evaluation window. Writes for the same investor and
    assignment are serialized, and the insert and the status change commit
    together.

    Raises:
        NotFound: If the assignment does not exist
        LedgerError: The specific rejection, see tycoon.engine.errors
    """
    try:
        tokens = check_tokens(tokens, incomplete, comment, config)

        with locks.hold((investor_id, assignment_id)), session.begin():
            logger.log(
                TRACE, "acquired ledger lock", extra={"investor_id": investor_id, "assignment_id": assignment_id}
            )
            assignment = assignment_storage.get(assignment_id, session=session)
            if assignment is None:
                raise NotFound("assignment not found", assignment_id=assignment_id)

            # a row lock on the investor orders concurrent writers, so each one
            # reads the investments committed before it, including new rows
            user_storage.lock(investor_id, session=session)

            own_team = team_storage.team_of(assignment.course_id, investor_id, session=session)
            if own_team is not None and own_team.team_id == team_id:
                raise NotAssigned("you cannot invest in your own team", team_id=team_id)

            evaluation = evaluation_storage.find_for_investor(
                assignment_id=assignment_id,
                student_id=investor_id,
                team_id=own_team.team_id if own_team else None,
                evaluated_team_id=team_id,
                session=session,
            )
            if evaluation is None:
                raise NotAssigned("you were not assigned to evaluate this team", team_id=team_id)

            prior = investment_storage.find(assignment_id=assignment_id, investor_id=investor_id, session=session)
            if len(prior) >= config.ledger.max_investments:
                raise CapExceeded(f"at most {config.ledger.max_investments} investments per assignment")

            spent = sum(inv.tokens for inv in prior)
            if spent + tokens > config.ledger.token_budget:
                raise BudgetExceeded(
                    f"only {config.ledger.token_budget - spent} of {config.ledger.token_budget} tokens remain",
                    requested=tokens,
                )

            if any(inv.team_id == team_id for inv in prior):
                raise DuplicateInvestment("you have already invested in this team", team_id=team_id)

            now = utcnow()
            due_at = assignment.evaluation_due_at or evaluation.due_at
            grace = datetime.timedelta(minutes=config.ledger.grace_period_minutes)
            if due_at is not None and now > due_at + grace:
                raise WindowClosed("the evaluation window has closed", due_at=due_at.isoformat())

            investment = investment_storage.create(
                assignment_id=assignment_id,
                investor_id=investor_id,
                team_id=team_id,
                tokens=tokens,
                rank=len(prior) + 1,
                is_incomplete=incomplete,
                comment=comment,
                session=session,
            )
            late = due_at is not None and now > due_at
            evaluation_storage.mark_completed(evaluation.evaluation_id, completed_at=now, late=late, session=session)
    except LedgerError as e:
        logger.info(
            "investment rejected",
            extra={
                "reason": type(e).__name__,
                "investor_id": investor_id,
                "team_id": team_id,
                "assignment_id": assignment_id,
                "tokens": tokens,
            },
        )
        raise

    logger.info(
        "investment recorded",
        extra={
            "investment_id": investment.investment_id,
            "investor_id": investor_id,
            "team_id": team_id,
            "assignment_id": assignment_id,
            "tokens": tokens,
            "incomplete": incomplete,
            "late": late,
        },
    )
    return investment


def remaining_budget(
    investor_id: UserID,
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> int:
    with session.begin():
        prior = investment_storage.find(assignment_id=assignment_id, investor_id=investor_id, session=session)
    return config.ledger.token_budget - sum(inv.tokens for inv in prior)


def investments_of(
    investor_id: UserID,
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> t.Sequence[Investment]:
    with session.begin():
        return investment_storage.find(assignment_id=assignment_id, investor_id=investor_id, session=session)
