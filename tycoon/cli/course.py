"""CLI commands for entering courses, students, teams and submissions."""

from __future__ import annotations

import datetime

from sqlalchemy.orm import Session

import tycoon.lib.cli as click
from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.core.provider import TimestampProvider
from tycoon.engine import roster
from tycoon.model import AssignmentID, CourseID, DistributionMode, EnrollmentRole, TeamID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import course as course_storage
from tycoon.storage import submission as submission_storage
from tycoon.storage import team as team_storage
from tycoon.storage import user as user_storage


@click.group("course")
def course():
    """Manage courses, enrollments, teams and assignments."""
    ...


@course.command("create")
@click.argument("code")
@click.argument("title")
@di.inject
def course_create(code: str, title: str, session: Session = di.Provide["storage.persistent.session"]) -> None:
    """Create a course identified by CODE."""
    with session.begin():
        if course_storage.get(code=code, session=session) is not None:
            raise click.ClickException(f"course {code!r} already exists")
        created = course_storage.create(title=title, code=code, session=session)
    click.echo(f"Created course: {created.title}")
    click.echo(f"  ID: {created.course_id}")


@course.command("enroll")
@click.argument("course_id", type=click.KeyParamType(CourseID))
@click.argument("email")
@click.argument("name")
@click.option("--role", "-r", type=click.EnumType(EnrollmentRole), default=EnrollmentRole.Student)
@di.inject
def course_enroll(
    course_id: CourseID,
    email: str,
    name: str,
    role: EnrollmentRole,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Enroll the user with EMAIL, creating them if needed."""
    with session.begin():
        if course_storage.get(course_id, session=session) is None:
            raise click.ClickException(f"course {course_id} not found")
        user = user_storage.get(email=email, session=session) or user_storage.create(
            email=email, name=name, session=session
        )
        course_storage.enroll(course_id, user.user_id, role=role, session=session)
    click.echo(f"Enrolled {user.name} ({role.value})")
    click.echo(f"  ID: {user.user_id}")


@course.command("team")
@click.argument("course_id", type=click.KeyParamType(CourseID))
@click.argument("name")
@click.argument("emails", nargs=-1)
@di.inject
def course_team(
    course_id: CourseID,
    name: str,
    emails: tuple[str, ...],
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Form team NAME from the students with the given EMAILS."""
    with session.begin():
        members = []
        for email in emails:
            user = user_storage.get(email=email, session=session)
            if user is None:
                raise click.ClickException(f"no user with email {email!r}")
            members.append(user.user_id)
        team = team_storage.create(course_id=course_id, name=name, members=members, session=session)
    click.echo(f"Created team: {team.name} ({len(team.members)} members)")
    click.echo(f"  ID: {team.team_id}")


@course.command("members")
@click.argument("team_id", type=click.KeyParamType(TeamID))
@click.argument("emails", nargs=-1)
@di.inject
def course_members(
    team_id: TeamID,
    emails: tuple[str, ...],
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Replace the members of a team that is not locked."""
    with session.begin():
        members = []
        for email in emails:
            user = user_storage.get(email=email, session=session)
            if user is None:
                raise click.ClickException(f"no user with email {email!r}")
            members.append(user.user_id)
    team = roster.change_members(team_id, members, session=session)
    click.echo(f"Team {team.name} now has {len(team.members)} members")


@course.command("assignment")
@click.argument("course_id", type=click.KeyParamType(CourseID))
@click.argument("title")
@click.option("--due", type=click.DateTimeParamType(), default=None)
@click.option("--mode", type=click.EnumType(DistributionMode), default=None)
@di.inject
def course_assignment(
    course_id: CourseID,
    title: str,
    due: datetime.datetime | None,
    mode: DistributionMode | None,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> None:
    """Create an assignment in the course."""
    with session.begin():
        created = assignment_storage.create(
            course_id=course_id,
            title=title,
            due_at=due,
            distribution_mode=mode or config.distribution.mode,
            session=session,
        )
    click.echo(f"Created assignment: {created.title} ({created.distribution_mode.value} mode)")
    click.echo(f"  ID: {created.assignment_id}")


@course.command("submit")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
@click.argument("team_name")
@click.option("--link", default=None)
@di.inject
def course_submit(
    assignment_id: AssignmentID,
    team_name: str,
    link: str | None,
    session: Session = di.Provide["storage.persistent.session"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> None:
    """Mark TEAM_NAME's work for the assignment as submitted."""
    with session.begin():
        assignment = assignment_storage.get(assignment_id, session=session)
        if assignment is None:
            raise click.ClickException(f"assignment {assignment_id} not found")
        teams = team_storage.find(course_id=assignment.course_id, session=session)
        team = next((tm for tm in teams if tm.name == team_name), None)
        if team is None:
            raise click.ClickException(f"no team named {team_name!r} in the course")
        submission = submission_storage.submit(
            team_id=team.team_id, assignment_id=assignment_id, submitted_at=utcnow(), primary_link=link, session=session
        )
    click.echo(f"Submitted for {team.name}")
    click.echo(f"  ID: {submission.submission_id}")
