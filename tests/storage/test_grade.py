"""Tests for tycoon.storage.grade module."""

from __future__ import annotations

import decimal
import typing as t

import pytest
from sqlalchemy.orm import Session

from tycoon.model import Grade, GradeID, GradeStatus, Tier
from tycoon.storage import grade as grade_storage
from tycoon.storage.grade import GradeCreateParams

if t.TYPE_CHECKING:
    from conftest import Cohort

D = decimal.Decimal


@pytest.fixture
def drafts(db_session: Session, cohort_factory: t.Callable[..., Cohort]) -> tuple[Grade, ...]:
    cohort = cohort_factory(teams=3)
    params: list[GradeCreateParams] = [
        {
            "team_id": s.team_id,
            "submission_id": s.submission_id,
            "trimmed_mean": mean,
            "tier": tier,
            "percentage": percentage,
            "total_investments": 2,
        }
        for s, (mean, tier, percentage) in zip(
            cohort.submissions,
            [(D("30.00"), Tier.Median, 80), (D("45.50"), Tier.High, 100), (D("12.25"), Tier.Low, 60)],
        )
    ]
    with db_session.begin():
        return grade_storage.replace_for_assignment(cohort.assignment.assignment_id, params, session=db_session)


class TestReplaceForAssignment(object):
    """Tests for grade_storage.replace_for_assignment()."""

    def test_creates_drafts_in_rank_order(self, drafts: tuple[Grade, ...]) -> None:
        """New grades are drafts, returned best first."""
        assert [g.trimmed_mean for g in drafts] == [D("45.50"), D("30.00"), D("12.25")]
        assert all(g.status is GradeStatus.Draft for g in drafts)

    def test_replaces_existing(self, db_session: Session, drafts: tuple[Grade, ...]) -> None:
        """Replacing with an empty batch clears the assignment's grades."""
        assignment_id = drafts[0].assignment_id

        with db_session.begin():
            grade_storage.replace_for_assignment(assignment_id, [], session=db_session)
            result = grade_storage.find(assignment_id=assignment_id, session=db_session)

        assert result == ()


class TestGet(object):
    """Tests for grade_storage.get()."""

    def test_get_by_team(self, db_session: Session, drafts: tuple[Grade, ...]) -> None:
        """get() with assignment_id and team_id returns the grade."""
        expected = drafts[1]

        with db_session.begin():
            result = grade_storage.get(
                assignment_id=expected.assignment_id, team_id=expected.team_id, session=db_session
            )

        assert result is not None
        assert result.grade_id == expected.grade_id

    def test_get_requires_a_key(self, db_session: Session) -> None:
        """get() with an incomplete key raises ValueError."""
        with pytest.raises(ValueError):
            with db_session.begin():
                grade_storage.get(session=db_session)


class TestUpdate(object):
    """Tests for grade_storage.update()."""

    def test_update_leaves_unset_fields(self, db_session: Session, drafts: tuple[Grade, ...]) -> None:
        """Only the given fields change."""
        grade = drafts[0]

        with db_session.begin():
            grade_storage.update(grade.grade_id, percentage=90, admin_notes="strong demo", session=db_session)
            result = grade_storage.get(grade.grade_id, session=db_session)

        assert result is not None
        assert result.percentage == 90
        assert result.admin_notes == "strong demo"
        assert result.tier is grade.tier

    def test_update_nonexistent(self, db_session: Session) -> None:
        """update() raises KeyError for an unknown grade."""
        with pytest.raises(KeyError):
            with db_session.begin():
                grade_storage.update(GradeID(), percentage=50, session=db_session)


class TestSetStatus(object):
    """Tests for grade_storage.set_status()."""

    def test_counts_changed_rows(self, db_session: Session, drafts: tuple[Grade, ...]) -> None:
        """Grades already in the target status are not counted."""
        ids = [g.grade_id for g in drafts]

        with db_session.begin():
            first = grade_storage.set_status(ids[:2], GradeStatus.Published, session=db_session)
            second = grade_storage.set_status(ids, GradeStatus.Published, session=db_session)
            published = grade_storage.find(grade_ids=ids, published_only=True, session=db_session)

        assert (first, second) == (2, 1)
        assert len(published) == 3
