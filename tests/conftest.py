"""Pytest fixtures for tycoon tests.

Each test gets its own in-memory SQLite database, built by the same engine
and session providers the storage container uses, with the schema created
from the table metadata. Factories open their own transactions, so tests
call engine operations outside of any transaction just like production
callers do.

Usage:
    def test_something(db_session, cohort_factory):
        cohort = cohort_factory(teams=4)
"""

from __future__ import annotations

import datetime
import random
import typing as t

import pytest
import sqlalchemy
from sqlalchemy.engine.url import URL as DSN
from sqlalchemy.orm import Session

from tycoon.core.config import EngineSettings
from tycoon.core.container.storage import create_sqlite_engine, provide_session
from tycoon.engine import distribution, grading, ledger, roster
from tycoon.engine.distribution import DistributionResult
from tycoon.lib.lock import KeyedLock
from tycoon.model import Assignment, BaseModel, Course, DistributionMode, EnrollmentRole, Grade, Investment, \
    Submission, Team, User, UserID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import course as course_storage
from tycoon.storage import submission as submission_storage
from tycoon.storage import team as team_storage
from tycoon.storage import user as user_storage
from tycoon.storage.table import base

NOW = datetime.datetime(2026, 3, 2, 12, 0, tzinfo=datetime.UTC)


class Clock(object):
    """A settable timestamp provider."""

    def __init__(self, now: datetime.datetime):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime.datetime:
        self.now += datetime.timedelta(**kwargs)
        return self.now


class Cohort(BaseModel):
    """A course with teams of students and one assignment."""

    course: Course
    assignment: Assignment
    teams: tuple[Team, ...]
    submissions: tuple[Submission, ...]

    @property
    def students(self) -> tuple[UserID, ...]:
        return tuple(m for team in self.teams for m in team.members)

    def team_of(self, user_id: UserID) -> Team:
        return next(team for team in self.teams if team.has_member(user_id))


@pytest.fixture
def engine() -> t.Generator[sqlalchemy.Engine]:
    eng = create_sqlite_engine(DSN.create("sqlite+pysqlite"))
    base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db_session(engine: sqlalchemy.Engine) -> t.Generator[Session]:
    """A session with autobegin=False, as the container provides it."""
    session = provide_session(engine)
    yield session
    session.close()


@pytest.fixture
def engine_config() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(20260302)


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def locks() -> KeyedLock[t.Any]:
    return KeyedLock()


@pytest.fixture
def user_factory(db_session: Session) -> t.Callable[..., User]:
    counter = iter(range(1, 10_000))

    def create_user(email: str | None = None, name: str | None = None) -> User:
        n = next(counter)
        with db_session.begin():
            return user_storage.create(
                email=email or f"student{n}@example.edu",
                name=name or f"Student {n}",
                session=db_session,
            )

    return create_user


@pytest.fixture
def course_factory(db_session: Session) -> t.Callable[..., Course]:
    counter = iter(range(1, 10_000))

    def create_course(title: str = "Entrepreneurship 101", code: str | None = None) -> Course:
        with db_session.begin():
            return course_storage.create(title=title, code=code or f"ENT-{next(counter)}", session=db_session)

    return create_course


@pytest.fixture
def team_factory(db_session: Session, user_factory: t.Callable[..., User]) -> t.Callable[..., Team]:
    """Create a team of freshly enrolled students."""
    counter = iter(range(1, 10_000))

    def create_team(course: Course, members: int = 2, name: str | None = None) -> Team:
        users = [user_factory() for _ in range(members)]
        with db_session.begin():
            for u in users:
                course_storage.enroll(course.course_id, u.user_id, role=EnrollmentRole.Student, session=db_session)
            return team_storage.create(
                course_id=course.course_id,
                name=name or f"Team {next(counter)}",
                members=[u.user_id for u in users],
                session=db_session,
            )

    return create_team


@pytest.fixture
def assignment_factory(db_session: Session) -> t.Callable[..., Assignment]:
    def create_assignment(
        course: Course,
        title: str = "Pitch Deck",
        due_at: datetime.datetime | None = NOW,
        distribution_mode: DistributionMode = DistributionMode.Student,
    ) -> Assignment:
        with db_session.begin():
            return assignment_storage.create(
                course_id=course.course_id,
                title=title,
                due_at=due_at,
                distribution_mode=distribution_mode,
                session=db_session,
            )

    return create_assignment


@pytest.fixture
def submission_factory(db_session: Session) -> t.Callable[..., Submission]:
    def submit(team: Team, assignment: Assignment, draft: bool = False) -> Submission:
        with db_session.begin():
            if draft:
                return submission_storage.create_draft(
                    team_id=team.team_id, assignment_id=assignment.assignment_id, session=db_session
                )
            return submission_storage.submit(
                team_id=team.team_id,
                assignment_id=assignment.assignment_id,
                submitted_at=NOW - datetime.timedelta(hours=1),
                primary_link=f"https://example.edu/{team.team_id.key}",
                session=db_session,
            )

    return submit


@pytest.fixture
def cohort_factory(
    course_factory: t.Callable[..., Course],
    team_factory: t.Callable[..., Team],
    assignment_factory: t.Callable[..., Assignment],
    submission_factory: t.Callable[..., Submission],
) -> t.Callable[..., Cohort]:
    """Build a course of teams where the first `submitted` teams have submitted.

    Usage:
        cohort = cohort_factory(teams=5, submitted=4, mode=DistributionMode.Team)
    """

    def create_cohort(
        teams: int = 4,
        members: int = 2,
        submitted: int | None = None,
        mode: DistributionMode = DistributionMode.Student,
        due_at: datetime.datetime | None = NOW,
    ) -> Cohort:
        course = course_factory()
        assignment = assignment_factory(course, due_at=due_at, distribution_mode=mode)
        created = tuple(team_factory(course, members=members) for _ in range(teams))
        submitted = teams if submitted is None else submitted
        submissions = tuple(submission_factory(team, assignment) for team in created[:submitted])
        return Cohort(course=course, assignment=assignment, teams=created, submissions=submissions)

    return create_cohort


@pytest.fixture
def move_student(db_session: Session) -> t.Callable[[Cohort, UserID, Team], None]:
    """Close the round, unlock the teams and move a student into another team.

    Usage:
        move_student(cohort, cohort.students[0], cohort.teams[1])
    """

    def run(cohort: Cohort, student: UserID, target: Team) -> None:
        distribution.close_evaluation(cohort.assignment.assignment_id, unlock_teams=True, session=db_session)
        source = cohort.team_of(student)
        roster.change_members(
            source.team_id, tuple(m for m in source.members if m != student), session=db_session
        )
        roster.change_members(target.team_id, (*target.members, student), session=db_session)

    return run


@pytest.fixture
def distribute(
    db_session: Session, engine_config: EngineSettings, rng: random.Random, clock: Clock
) -> t.Callable[..., DistributionResult]:
    """Run distribute_assignment against the test database."""

    def run(assignment: Assignment, **kwargs: t.Any) -> DistributionResult:
        kwargs.setdefault("rng", rng)
        return distribution.distribute_assignment(
            assignment.assignment_id, session=db_session, config=engine_config, utcnow=clock, **kwargs
        )

    return run


@pytest.fixture
def invest(
    db_session: Session, engine_config: EngineSettings, clock: Clock, locks: KeyedLock[t.Any]
) -> t.Callable[..., Investment]:
    """Run record_investment against the test database."""

    def run(investor: UserID, team: Team, assignment: Assignment, tokens: int, **kwargs: t.Any) -> Investment:
        return ledger.record_investment(
            investor,
            team.team_id,
            assignment.assignment_id,
            tokens,
            session=db_session,
            config=engine_config,
            utcnow=clock,
            locks=locks,
            **kwargs,
        )

    return run


@pytest.fixture
def grade(db_session: Session, engine_config: EngineSettings) -> t.Callable[..., tuple[Grade, ...]]:
    """Run grade_assignment against the test database."""

    def run(assignment: Assignment, config: EngineSettings | None = None) -> tuple[Grade, ...]:
        return grading.grade_assignment(assignment.assignment_id, session=db_session, config=config or engine_config)

    return run
