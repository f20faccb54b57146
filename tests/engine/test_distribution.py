"""Tests for tycoon.engine.distribution module."""

from __future__ import annotations

import datetime
import logging
import random
import typing as t

import pytest
from sqlalchemy.orm import Session

from tycoon.core.config import EngineSettings
from tycoon.engine import distribution, roster
from tycoon.engine.distribution import DistributionResult
from tycoon.engine.errors import EvaluationPhaseActive, InsufficientData, InvalidEvaluationCount, NotFound, \
    SelfEvaluationDetected, TeamLocked
from tycoon.model import AssignmentID, DistributionMode, EvaluationAssignment, EvaluationStatus, StudentEvaluator, \
    TeamEvaluator, UserID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import course as course_storage
from tycoon.storage import evaluation as evaluation_storage
from tycoon.storage import team as team_storage

if t.TYPE_CHECKING:
    from conftest import Clock, Cohort


def evaluated_own_team(cohort: Cohort, ev: EvaluationAssignment) -> bool:
    match ev.evaluator:
        case StudentEvaluator(user_id=user_id):
            return cohort.team_of(user_id).team_id == ev.evaluated_team_id
        case TeamEvaluator(team_id=team_id):
            return team_id == ev.evaluated_team_id


class TestDistributeAssignment(object):
    """Tests for distribution.distribute_assignment()."""

    def test_student_mode_assigns_every_student(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Every student gets one evaluation per other submitting team when k exceeds them."""
        cohort = cohort_factory(teams=4, members=2)

        result = distribute(cohort.assignment, k=5)

        assert result.summary.mode is DistributionMode.Student
        assert result.summary.processed == 8
        assert result.summary.skipped == ()
        assert result.summary.created == 8 * 3
        assert len(result.assignments) == 8 * 3

        per_student: dict[UserID, int] = {}
        for ev in result.assignments:
            assert isinstance(ev.evaluator, StudentEvaluator)
            per_student[ev.evaluator.user_id] = per_student.get(ev.evaluator.user_id, 0) + 1
        assert per_student == {student: 3 for student in cohort.students}

    def test_team_mode_assigns_teams(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """In team mode each team is one evaluator."""
        cohort = cohort_factory(teams=5, mode=DistributionMode.Team)

        result = distribute(cohort.assignment, k=2)

        assert result.summary.mode is DistributionMode.Team
        assert result.summary.processed == 5
        assert len(result.assignments) == 5 * 2
        assert all(isinstance(ev.evaluator, TeamEvaluator) for ev in result.assignments)

    @pytest.mark.parametrize("mode", [DistributionMode.Student, DistributionMode.Team])
    def test_never_assigns_own_team(
        self,
        mode: DistributionMode,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """No evaluator is ever paired with its own team, whatever the seed."""
        cohort = cohort_factory(teams=6, members=3, mode=mode)

        for seed in range(20):
            result = distribute(cohort.assignment, k=3, rng=random.Random(seed), force=True)
            assert not any(evaluated_own_team(cohort, ev) for ev in result.assignments)

    def test_no_duplicate_pairs(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """An evaluator sees each submission at most once."""
        cohort = cohort_factory(teams=6)

        result = distribute(cohort.assignment, k=4)

        pairs = [(ev.evaluator.key, ev.evaluated_team_id) for ev in result.assignments]
        assert len(pairs) == len(set(pairs))

    def test_only_submitted_work_is_distributed(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Teams without a submission are not evaluated, but their members still evaluate."""
        cohort = cohort_factory(teams=4, submitted=3)
        idle = cohort.teams[3]

        result = distribute(cohort.assignment, k=5)

        assert idle.team_id not in {ev.evaluated_team_id for ev in result.assignments}
        evaluators = {ev.evaluator.key for ev in result.assignments}
        assert set(idle.members) <= evaluators
        # members of the idle team may review all three submitting teams
        for member in idle.members:
            assert sum(1 for ev in result.assignments if ev.evaluator.key == member) == 3

    def test_withdrawn_students_do_not_evaluate(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Only actively enrolled students receive evaluations."""
        cohort = cohort_factory(teams=3)
        dropped = cohort.students[0]
        with db_session.begin():
            course_storage.withdraw(cohort.course.course_id, dropped, session=db_session)

        result = distribute(cohort.assignment, k=2)

        assert dropped not in {ev.evaluator.key for ev in result.assignments}

    def test_default_count_from_config(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        engine_config: EngineSettings,
    ) -> None:
        """Without k the configured default is used."""
        cohort = cohort_factory(teams=8, members=1)

        result = distribute(cohort.assignment)

        assert result.summary.evaluations_per_evaluator == engine_config.distribution.default_evaluations
        assert len(result.assignments) == 8 * engine_config.distribution.default_evaluations

    @pytest.mark.parametrize("k", [0, 11])
    def test_rejects_count_out_of_bounds(
        self,
        k: int,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """k outside the configured bounds is rejected before anything is written."""
        cohort = cohort_factory(teams=3)

        with pytest.raises(InvalidEvaluationCount):
            distribute(cohort.assignment, k=k)

        with db_session.begin():
            assert evaluation_storage.count(assignment_id=cohort.assignment.assignment_id, session=db_session) == 0

    def test_requires_two_submitting_teams(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """A single submission cannot be peer evaluated."""
        cohort = cohort_factory(teams=3, submitted=1)

        with pytest.raises(InsufficientData):
            distribute(cohort.assignment, k=2)

    def test_nonexistent_assignment(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Distributing an unknown assignment raises NotFound."""
        cohort = cohort_factory(teams=2)
        missing = cohort.assignment.model_copy(update={"assignment_id": AssignmentID()})

        with pytest.raises(NotFound):
            distribute(missing, k=1)

    def test_starts_evaluation_phase(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        clock: Clock,
        engine_config: EngineSettings,
    ) -> None:
        """The assignment is switched into its evaluation phase with a default window."""
        cohort = cohort_factory(teams=3)
        assert cohort.assignment.due_at is not None

        distribute(cohort.assignment, k=2)

        with db_session.begin():
            assignment = assignment_storage.get(cohort.assignment.assignment_id, session=db_session)
        assert assignment is not None
        expected_due = cohort.assignment.due_at + datetime.timedelta(
            days=engine_config.distribution.default_window_days
        )
        assert assignment.is_evaluation_active
        assert assignment.evaluations_per_evaluator == 2
        assert assignment.evaluation_start_at == clock.now
        assert assignment.evaluation_due_at == expected_due

    def test_explicit_window(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        clock: Clock,
    ) -> None:
        """An explicit due time is stamped on the assignment and on every evaluation."""
        cohort = cohort_factory(teams=3, due_at=None)
        due = clock.now + datetime.timedelta(days=1)

        result = distribute(cohort.assignment, k=2, evaluation_due_at=due)

        assert all(ev.due_at == due for ev in result.assignments)
        with db_session.begin():
            assignment = assignment_storage.get(cohort.assignment.assignment_id, session=db_session)
        assert assignment is not None
        assert assignment.evaluation_due_at == due

    def test_no_window_without_due_date(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Without an assignment due date the evaluations have no due time."""
        cohort = cohort_factory(teams=3, due_at=None)

        result = distribute(cohort.assignment, k=2)

        assert all(ev.due_at is None for ev in result.assignments)

    def test_rejects_while_phase_active(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """A second distribution during an active phase is refused."""
        cohort = cohort_factory(teams=3)
        distribute(cohort.assignment, k=2)

        with pytest.raises(EvaluationPhaseActive):
            distribute(cohort.assignment, k=2)

    def test_redistribution_replaces_assignments(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Redistributing deletes the old batch rather than adding to it."""
        cohort = cohort_factory(teams=4)
        first = distribute(cohort.assignment, k=3)

        second = distribute(cohort.assignment, k=1, force=True)

        with db_session.begin():
            stored = evaluation_storage.find(assignment_id=cohort.assignment.assignment_id, session=db_session)
        assert len(stored) == len(second.assignments) == 8
        assert {ev.evaluation_id for ev in stored}.isdisjoint({ev.evaluation_id for ev in first.assignments})

    def test_mode_override(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """An explicit mode replaces the assignment's stored mode."""
        cohort = cohort_factory(teams=3, mode=DistributionMode.Student)

        result = distribute(cohort.assignment, k=2, mode=DistributionMode.Team)

        assert result.summary.mode is DistributionMode.Team
        with db_session.begin():
            assignment = assignment_storage.get(cohort.assignment.assignment_id, session=db_session)
        assert assignment is not None
        assert assignment.distribution_mode is DistributionMode.Team

    def test_locks_teams(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Team membership is frozen once evaluations are distributed."""
        cohort = cohort_factory(teams=3)
        team = cohort.teams[0]

        distribute(cohort.assignment, k=2)

        with pytest.raises(TeamLocked):
            roster.change_members(team.team_id, team.members[:1], session=db_session)

    def test_self_evaluation_rolls_back(
        self,
        monkeypatch: pytest.MonkeyPatch,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """A batch that fails verification leaves no trace."""
        cohort = cohort_factory(teams=3)
        monkeypatch.setattr(distribution, "candidate_pool", lambda evaluator, submissions, teams: list(submissions))

        with pytest.raises(SelfEvaluationDetected):
            distribute(cohort.assignment, k=3)

        with db_session.begin():
            assert evaluation_storage.count(assignment_id=cohort.assignment.assignment_id, session=db_session) == 0
            assignment = assignment_storage.get(cohort.assignment.assignment_id, session=db_session)
            locked = [team.locked for team in team_storage.find(course_id=cohort.course.course_id, session=db_session)]
        assert assignment is not None
        assert not assignment.is_evaluation_active
        assert not any(locked)

    def test_logs_summary_at_info(
        self,
        caplog: pytest.LogCaptureFixture,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """With INFO enabled the summary record is emitted and the call still returns."""
        cohort = cohort_factory(teams=3)
        caplog.set_level(logging.INFO, logger="tycoon")

        result = distribute(cohort.assignment, k=2)

        [record] = [r for r in caplog.records if r.getMessage() == "distribution complete"]
        assert getattr(record, "rows_created") == len(result.assignments) == 6
        assert getattr(record, "teams_locked") == 3


class TestDistribute(object):
    """Tests for distribution.distribute()."""

    def test_skips_evaluators_without_candidates(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        engine_config: EngineSettings,
    ) -> None:
        """Evaluators whose only candidate is their own team are skipped."""
        cohort = cohort_factory(teams=3)
        with db_session.begin():
            resolved = roster.resolve(cohort.assignment.assignment_id, session=db_session, config=engine_config)
        own = cohort.teams[0]
        submissions = [s for s in resolved.submissions if s.team_id == own.team_id]

        pairings, skipped = distribution.distribute(
            resolved.evaluators, submissions, 2, random.Random(1), resolved.teams
        )

        assert {e.key for e in skipped} == set(own.members)
        assert all(p.submission.team_id == own.team_id for p in pairings)
        assert len(pairings) == len(resolved.evaluators) - len(own.members)

    def test_is_reproducible_with_seed(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        engine_config: EngineSettings,
    ) -> None:
        """The same seed yields the same batch."""
        cohort = cohort_factory(teams=6)
        with db_session.begin():
            resolved = roster.resolve(cohort.assignment.assignment_id, session=db_session, config=engine_config)

        def run(seed: int) -> list[tuple[str, str]]:
            pairings, _ = distribution.distribute(
                resolved.evaluators, resolved.submissions, 2, random.Random(seed), resolved.teams
            )
            return [(p.evaluator.key, p.submission.team_id) for p in pairings]

        assert run(7) == run(7)


class TestCloseEvaluation(object):
    """Tests for distribution.close_evaluation()."""

    def test_close_allows_redistribution(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Closing the phase makes redistribution possible without force."""
        cohort = cohort_factory(teams=3)
        distribute(cohort.assignment, k=2)

        distribution.close_evaluation(cohort.assignment.assignment_id, session=db_session)
        result = distribute(cohort.assignment, k=1)

        assert len(result.assignments) == 6

    def test_close_can_unlock_teams(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """With unlock_teams, membership can change again."""
        cohort = cohort_factory(teams=3)
        team = cohort.teams[0]
        distribute(cohort.assignment, k=2)

        distribution.close_evaluation(cohort.assignment.assignment_id, unlock_teams=True, session=db_session)

        updated = roster.change_members(team.team_id, team.members[:1], session=db_session)
        assert updated.members == team.members[:1]
        assert not updated.locked

    def test_close_nonexistent(self, db_session: Session) -> None:
        """Closing an unknown assignment raises NotFound."""
        with pytest.raises(NotFound):
            distribution.close_evaluation(AssignmentID(), session=db_session)


class TestSelfEvaluationAudit(object):
    """Tests for distribution.find_self_evaluations() and remove_self_evaluations()."""

    @pytest.fixture
    def moved(
        self,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        move_student: t.Callable[..., None],
    ) -> tuple[Cohort, UserID]:
        """Three teams of two; after distribution one student joins the second team."""
        cohort = cohort_factory(teams=3)
        distribute(cohort.assignment, k=2)
        student = cohort.teams[0].members[0]
        move_student(cohort, student, cohort.teams[1])
        return cohort, student

    def test_fresh_distribution_has_none(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """A batch that was just generated contains no self-evaluations."""
        cohort = cohort_factory(teams=4)
        distribute(cohort.assignment, k=3)

        assert distribution.find_self_evaluations(cohort.assignment.assignment_id, session=db_session) == ()

    def test_finds_evaluation_of_joined_team(self, db_session: Session, moved: tuple[Cohort, UserID]) -> None:
        """An evaluation of the team a student has since joined is reported."""
        cohort, student = moved

        (found,) = distribution.find_self_evaluations(cohort.assignment.assignment_id, session=db_session)

        assert found.evaluator == StudentEvaluator(user_id=student)
        assert found.evaluated_team_id == cohort.teams[1].team_id

    def test_removes_only_self_evaluations(self, db_session: Session, moved: tuple[Cohort, UserID]) -> None:
        """Cleanup deletes the self-evaluations and leaves the rest alone."""
        cohort, student = moved
        assignment_id = cohort.assignment.assignment_id
        with db_session.begin():
            before = evaluation_storage.count(assignment_id=assignment_id, session=db_session)

        (removed,) = distribution.remove_self_evaluations(assignment_id, session=db_session)

        assert removed.evaluator == StudentEvaluator(user_id=student)
        with db_session.begin():
            assert evaluation_storage.count(assignment_id=assignment_id, session=db_session) == before - 1
            assert evaluation_storage.get(removed.evaluation_id, session=db_session) is None
        assert distribution.find_self_evaluations(assignment_id, session=db_session) == ()

    def test_nothing_to_remove(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
    ) -> None:
        """Cleanup on a clean batch removes nothing."""
        cohort = cohort_factory(teams=3)
        result = distribute(cohort.assignment, k=2)

        assert distribution.remove_self_evaluations(cohort.assignment.assignment_id, session=db_session) == ()
        assert distribution.is_distributed(cohort.assignment.assignment_id, session=db_session)
        assert len(result.assignments) == 6

    def test_unknown_assignment(self, db_session: Session) -> None:
        """Auditing an unknown assignment raises NotFound."""
        with pytest.raises(NotFound):
            distribution.find_self_evaluations(AssignmentID(), session=db_session)
        with pytest.raises(NotFound):
            distribution.remove_self_evaluations(AssignmentID(), session=db_session)


class TestMarkMissed(object):
    """Tests for distribution.mark_missed()."""

    def test_marks_overdue_open_evaluations(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        engine_config: EngineSettings,
        clock: Clock,
    ) -> None:
        """Open evaluations past their due time become missed."""
        cohort = cohort_factory(teams=3)
        result = distribute(cohort.assignment, k=2, evaluation_due_at=clock.now + datetime.timedelta(hours=1))

        assert distribution.mark_missed(
            cohort.assignment.assignment_id, session=db_session, config=engine_config, utcnow=clock
        ) == 0

        clock.advance(hours=2)
        n = distribution.mark_missed(
            cohort.assignment.assignment_id, session=db_session, config=engine_config, utcnow=clock
        )

        assert n == len(result.assignments)
        with db_session.begin():
            counts = evaluation_storage.count_by_status(
                assignment_id=cohort.assignment.assignment_id, session=db_session
            )
        assert counts[EvaluationStatus.Missed] == n
        assert counts[EvaluationStatus.Assigned] == 0

    def test_respects_grace_period(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        clock: Clock,
    ) -> None:
        """Nothing is missed while the grace period lasts."""
        config = EngineSettings(ledger={"grace_period_minutes": 30})
        cohort = cohort_factory(teams=3)
        distribute(cohort.assignment, k=2, evaluation_due_at=clock.now)

        clock.advance(minutes=20)

        assert distribution.mark_missed(
            cohort.assignment.assignment_id, session=db_session, config=config, utcnow=clock
        ) == 0

    def test_leaves_evaluations_without_due_time(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        engine_config: EngineSettings,
        clock: Clock,
    ) -> None:
        """Evaluations with no due time are never missed."""
        cohort = cohort_factory(teams=3, due_at=None)
        distribute(cohort.assignment, k=2)

        n = distribution.mark_missed(
            cohort.assignment.assignment_id,
            now=clock.now + datetime.timedelta(days=365),
            session=db_session,
            config=engine_config,
            utcnow=clock,
        )

        assert n == 0
