"""Conflict-free distribution of submissions to evaluators.

Every evaluator gets a uniform random sample, without replacement, of the
submissions of teams they are not part of. Coverage across submissions is
not balanced.
"""

from __future__ import annotations

import datetime
import logging
import random
import typing as t

from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.core.provider import TimestampProvider
from tycoon.model import AssignmentID, BaseModel, DistributionMode, EvaluationAssignment, Evaluator, \
    StudentEvaluator, Submission, Team, TeamEvaluator, TeamID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import evaluation as evaluation_storage
from tycoon.storage import Session
from tycoon.storage import team as team_storage
from tycoon.storage.evaluation import EvaluationCreateParams

from . import roster
from .errors import EvaluationPhaseActive, InvalidEvaluationCount, NotFound, SelfEvaluationDetected

logger = logging.getLogger(__name__)


class Pairing(t.NamedTuple):
    evaluator: Evaluator
    submission: Submission


class DistributionSummary(BaseModel):
    mode: DistributionMode
    evaluations_per_evaluator: int
    processed: int
    skipped: tuple[Evaluator, ...]
    created: int


class DistributionResult(BaseModel):
    assignments: tuple[EvaluationAssignment, ...]
    summary: DistributionSummary


def own_teams(evaluator: Evaluator, teams: t.Mapping[TeamID, Team]) -> frozenset[TeamID]:
    """The teams whose submissions the evaluator may never see."""
    match evaluator:
        case StudentEvaluator(user_id=user_id):
            return frozenset(team_id for team_id, team in teams.items() if team.has_member(user_id))
        case TeamEvaluator(team_id=team_id):
            return frozenset((team_id,))


def candidate_pool(
    evaluator: Evaluator, submissions: t.Sequence[Submission], teams: t.Mapping[TeamID, Team]
) -> list[Submission]:
    excluded = own_teams(evaluator, teams)
    return [s for s in submissions if s.team_id not in excluded]


def verify(pairings: t.Iterable[Pairing], teams: t.Mapping[TeamID, Team]) -> None:
    """Raise SelfEvaluationDetected if any pairing has a team evaluating itself."""
    for pairing in pairings:
        if pairing.submission.team_id in own_teams(pairing.evaluator, teams):
            raise SelfEvaluationDetected(
                "generated batch contains a self-evaluation",
                evaluator=pairing.evaluator.key,
                team_id=pairing.submission.team_id,
            )


def distribute(
    evaluators: t.Sequence[Evaluator],
    submissions: t.Sequence[Submission],
    k: int,
    rng: random.Random,
    teams: t.Mapping[TeamID, Team],
) -> tuple[list[Pairing], list[Evaluator]]:
    """Pair each evaluator with up to k submissions of other teams.

    Returns the pairings and the evaluators that were skipped because no
    other team had anything to review. The batch is verified as a whole
    before it is returned.
    """
    pairings: list[Pairing] = []
    skipped: list[Evaluator] = []

    for evaluator in evaluators:
        pool = candidate_pool(evaluator, submissions, teams)
        if not pool:
            logger.warning("no submissions available to evaluator, skipping", extra={"evaluator": evaluator.key})
            skipped.append(evaluator)
            continue
        if k > len(pool):
            logger.warning(
                "fewer submissions available than requested",
                extra={"evaluator": evaluator.key, "requested": k, "available": len(pool)},
            )
        rng.shuffle(pool)
        pairings.extend(Pairing(evaluator, s) for s in pool[: min(k, len(pool))])

    verify(pairings, teams)
    return pairings, skipped


def validate_count(k: int, config: EngineSettings) -> None:
    lo, hi = config.distribution.min_evaluations, config.distribution.max_evaluations
    if not lo <= k <= hi:
        raise InvalidEvaluationCount(f"evaluations per evaluator must be between {lo} and {hi}", requested=k)


def distribute_assignment(
    assignment_id: AssignmentID,
    *,
    k: int | None = None,
    mode: DistributionMode | None = None,
    rng: random.Random | None = None,
    evaluation_start_at: datetime.datetime | None = None,
    evaluation_due_at: datetime.datetime | None = None,
    force: bool = False,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> DistributionResult:
    """Replace the assignment's evaluation assignments with a fresh random batch.

    Runs as one transaction: the existing rows are deleted, the new ones
    inserted, the evaluation phase switched on with its window stamped, and
    the course's teams locked. Any error rolls all of it back.

    Raises:
        InvalidEvaluationCount: If k is outside the configured bounds
        NotFound: If the assignment does not exist
        EvaluationPhaseActive: If the phase is already active and force is not set
        InsufficientData: See roster.resolve
        SelfEvaluationDetected: If the generated batch fails verification
    """
    k = k if k is not None else config.distribution.default_evaluations
    validate_count(k, config)
    rng = rng or random.Random()

    with session.begin():
        assignment = assignment_storage.get(assignment_id, for_update=True, session=session)
        if assignment is None:
            raise NotFound("assignment not found", assignment_id=assignment_id)
        if assignment.is_evaluation_active and not force:
            raise EvaluationPhaseActive(
                "evaluation phase is active; close it before redistributing", assignment_id=assignment_id
            )

        resolved = roster.resolve(assignment_id, mode=mode, session=session, config=config)
        others = len(resolved.submitting_teams) - 1
        if k > others:
            logger.warning(
                "more evaluations requested than there are other submitting teams",
                extra={"assignment_id": assignment_id, "requested": k, "other_teams": others},
            )

        now = utcnow()
        start_at = evaluation_start_at or now
        due_at = evaluation_due_at
        if due_at is None and assignment.due_at is not None:
            due_at = assignment.due_at + datetime.timedelta(days=config.distribution.default_window_days)

        logger.info(
            "distributing evaluations",
            extra={
                "assignment_id": assignment_id,
                "mode": resolved.mode.value,
                "k": k,
                "evaluators": len(resolved.evaluators),
                "submissions": len(resolved.submissions),
            },
        )
        pairings, skipped = distribute(resolved.evaluators, resolved.submissions, k, rng, resolved.teams)

        params: list[EvaluationCreateParams] = [
            {
                "evaluator": p.evaluator,
                "evaluated_team_id": p.submission.team_id,
                "submission_id": p.submission.submission_id,
                "due_at": due_at,
            }
            for p in pairings
        ]
        created = evaluation_storage.replace_for_assignment(assignment_id, params, session=session)
        assignment_storage.update(
            assignment_id,
            is_evaluation_active=True,
            evaluation_start_at=start_at,
            evaluation_due_at=due_at,
            distribution_mode=resolved.mode,
            evaluations_per_evaluator=k,
            session=session,
        )
        locked = team_storage.lock_for_course(assignment.course_id, session=session)

    summary = DistributionSummary(
        mode=resolved.mode,
        evaluations_per_evaluator=k,
        processed=len(resolved.evaluators) - len(skipped),
        skipped=tuple(skipped),
        created=len(created),
    )
    logger.info(
        "distribution complete",
        extra={
            "assignment_id": assignment_id,
            "processed": summary.processed,
            "skipped": len(summary.skipped),
            "rows_created": summary.created,
            "teams_locked": locked,
        },
    )
    return DistributionResult(assignments=created, summary=summary)


def is_distributed(
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> bool:
    with session.begin():
        return evaluation_storage.count(assignment_id=assignment_id, session=session) > 0


def close_evaluation(
    assignment_id: AssignmentID,
    *,
    unlock_teams: bool = False,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Switch the evaluation phase off, which allows redistribution again.

    Raises:
        NotFound: If the assignment does not exist
    """
    with session.begin():
        assignment = assignment_storage.get(assignment_id, session=session)
        if assignment is None:
            raise NotFound("assignment not found", assignment_id=assignment_id)
        assignment_storage.update(assignment_id, is_evaluation_active=False, session=session)
        if unlock_teams:
            team_storage.lock_for_course(assignment.course_id, locked=False, session=session)
    logger.info("evaluation phase closed", extra={"assignment_id": assignment_id, "unlock_teams": unlock_teams})


def _self_evaluations(assignment_id: AssignmentID, *, session: Session) -> tuple[EvaluationAssignment, ...]:
    assignment = assignment_storage.get(assignment_id, session=session)
    if assignment is None:
        raise NotFound("assignment not found", assignment_id=assignment_id)
    teams = {team.team_id: team for team in team_storage.find(course_id=assignment.course_id, session=session)}
    return tuple(
        ev
        for ev in evaluation_storage.find(assignment_id=assignment_id, session=session)
        if ev.evaluated_team_id in own_teams(ev.evaluator, teams)
    )


def find_self_evaluations(
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[EvaluationAssignment, ...]:
    """Evaluation assignments whose evaluator is now a member of the evaluated team.

    A fresh batch never contains one, but membership can change once the
    phase is closed and the teams are unlocked.

    Raises:
        NotFound: If the assignment does not exist
    """
    with session.begin():
        return _self_evaluations(assignment_id, session=session)


def remove_self_evaluations(
    assignment_id: AssignmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[EvaluationAssignment, ...]:
    """Delete the assignment's self-evaluations and return what was removed."""
    with session.begin():
        found = _self_evaluations(assignment_id, session=session)
        evaluation_storage.delete([ev.evaluation_id for ev in found], session=session)
    if found:
        logger.warning("removed self-evaluations", extra={"assignment_id": assignment_id, "count": len(found)})
    return found


def mark_missed(
    assignment_id: AssignmentID,
    *,
    now: datetime.datetime | None = None,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> int:
    """Flip open evaluations to missed once their due time (plus grace) has passed.

    Evaluations without a due time are never missed.
    """
    cutoff = (now or utcnow()) - datetime.timedelta(minutes=config.ledger.grace_period_minutes)
    with session.begin():
        if assignment_storage.get(assignment_id, session=session) is None:
            raise NotFound("assignment not found", assignment_id=assignment_id)
        n = evaluation_storage.mark_missed(assignment_id=assignment_id, due_before=cutoff, session=session)
    logger.info("marked evaluations missed", extra={"assignment_id": assignment_id, "count": n})
    return n
