"""Tests for tycoon.engine.report module."""

from __future__ import annotations

import decimal
import typing as t

import pytest
from sqlalchemy.orm import Session

from tycoon.core.config import EngineSettings
from tycoon.engine import report
from tycoon.engine.distribution import DistributionResult
from tycoon.engine.errors import NotFound
from tycoon.model import AssignmentID, DistributionMode, Grade, Investment

if t.TYPE_CHECKING:
    from conftest import Cohort


class TestEvaluationProgress(object):
    """Tests for report.evaluation_progress()."""

    def test_student_mode(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        invest: t.Callable[..., Investment],
        engine_config: EngineSettings,
    ) -> None:
        """Each student's assigned and completed evaluations are counted."""
        cohort = cohort_factory(teams=3, members=2)
        distribute(cohort.assignment, k=2)
        busy = cohort.teams[0].members[0]
        invest(busy, cohort.teams[1], cohort.assignment, 30)
        invest(busy, cohort.teams[2], cohort.assignment, 20)

        progress = {
            p.student_id: p
            for p in report.evaluation_progress(
                cohort.assignment.assignment_id, session=db_session, config=engine_config
            )
        }

        assert set(progress) == set(cohort.students)
        assert progress[busy].assigned == 2
        assert progress[busy].completed == 2
        assert progress[busy].tokens_spent == 50
        assert progress[busy].tokens_remaining == 50
        assert progress[busy].is_done
        idle = cohort.teams[1].members[0]
        assert progress[idle].completed == 0
        assert progress[idle].tokens_remaining == engine_config.ledger.token_budget
        assert not progress[idle].is_done

    def test_team_mode_credits_members(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        invest: t.Callable[..., Investment],
        engine_config: EngineSettings,
    ) -> None:
        """In team mode every member shares the team's evaluations."""
        cohort = cohort_factory(teams=3, members=2, mode=DistributionMode.Team)
        distribute(cohort.assignment, k=2)
        first, second = cohort.teams[0].members
        invest(first, cohort.teams[1], cohort.assignment, 30)

        progress = {
            p.student_id: p
            for p in report.evaluation_progress(
                cohort.assignment.assignment_id, session=db_session, config=engine_config
            )
        }

        assert progress[first].assigned == progress[second].assigned == 2
        assert progress[first].completed == progress[second].completed == 1
        assert progress[first].investments == 1
        assert progress[second].investments == 0

    def test_nonexistent_assignment(self, db_session: Session, engine_config: EngineSettings) -> None:
        """An unknown assignment raises NotFound."""
        with pytest.raises(NotFound):
            report.evaluation_progress(AssignmentID(), session=db_session, config=engine_config)


class TestGradeStatistics(object):
    """Tests for report.grade_statistics()."""

    def test_statistics(
        self,
        db_session: Session,
        cohort_factory: t.Callable[..., Cohort],
        distribute: t.Callable[..., DistributionResult],
        invest: t.Callable[..., Investment],
        grade: t.Callable[..., tuple[Grade, ...]],
    ) -> None:
        """Tier counts and the mean trimmed mean are reported."""
        cohort = cohort_factory(teams=3, members=1)
        distribute(cohort.assignment, k=2)
        invest(cohort.teams[0].members[0], cohort.teams[1], cohort.assignment, 45)
        invest(cohort.teams[2].members[0], cohort.teams[1], cohort.assignment, 40)
        invest(cohort.teams[1].members[0], cohort.teams[0], cohort.assignment, 30)
        grade(cohort.assignment)

        stats = report.grade_statistics(cohort.assignment.assignment_id, session=db_session)

        assert stats.total_teams == 3
        assert (stats.high, stats.median, stats.low, stats.incomplete) == (1, 1, 0, 1)
        assert stats.total_investments == 3
        # (42.50 + 30.00 + 0.00) / 3
        assert stats.mean_investment == decimal.Decimal("24.17")

    def test_no_grades(self, db_session: Session) -> None:
        """An ungraded assignment has empty statistics."""
        stats = report.grade_statistics(AssignmentID(), session=db_session)

        assert stats.total_teams == 0
        assert stats.mean_investment == 0
