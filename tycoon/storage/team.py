from __future__ import annotations

import collections
import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.model import CourseID, Team, TeamID, UserID

from . import Session
from .table import team_memberships, teams


def _members(
    team_ids: t.Collection[TeamID], *, session: Session
) -> dict[TeamID, tuple[UserID, ...]]:
    stmt = (
        sqla
        .select(team_memberships.team_id, team_memberships.user_id)
        .where(team_memberships.team_id.in_(team_ids))
        .order_by(team_memberships.team_id, team_memberships.user_id)
    )
    members: dict[TeamID, list[UserID]] = collections.defaultdict(list)
    for team_id, user_id in session.execute(stmt).all():
        members[team_id].append(user_id)
    return {team_id: tuple(ls) for team_id, ls in members.items()}


def get(
    team_id: TeamID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Team | None:
    stmt = sqla.select(teams.__table__).where(teams.team_id == team_id)
    row = session.execute(stmt).mappings().one_or_none()
    if row is None:
        return None
    members = _members([team_id], session=session)
    return Team(**row, members=members.get(team_id, ()))


def find(
    *,
    course_id: CourseID | None = None,
    team_ids: t.Collection[TeamID] | None = None,
    member: UserID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Team, ...]:
    """Find teams with their members, ordered by team name."""
    stmt = sqla.select(teams.__table__).order_by(teams.name, teams.team_id)
    if course_id is not None:
        stmt = stmt.where(teams.course_id == course_id)
    if team_ids is not None:
        stmt = stmt.where(teams.team_id.in_(team_ids))
    if member is not None:
        stmt = stmt.join(team_memberships, team_memberships.team_id == teams.team_id).where(
            team_memberships.user_id == member
        )
    rows = session.execute(stmt).mappings().all()
    members = _members([row["team_id"] for row in rows], session=session)
    return tuple(Team(**row, members=members.get(row["team_id"], ())) for row in rows)


def team_of(
    course_id: CourseID,
    user_id: UserID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Team | None:
    """The student's team in a course, if they have one."""
    found = find(course_id=course_id, member=user_id, session=session)
    return found[0] if found else None


def create(
    *,
    course_id: CourseID,
    name: str,
    members: t.Sequence[UserID] = (),
    session: Session = di.Provide["storage.persistent.session"],
) -> Team:
    team_id = TeamID()
    session.execute(sqla.insert(teams).values(team_id=team_id, course_id=course_id, name=name))
    if members:
        session.execute(
            sqla.insert(team_memberships),
            [{"team_id": team_id, "user_id": m, "course_id": course_id} for m in members],
        )
    session.flush()
    result = get(team_id, session=session)
    assert result is not None
    return result


def set_members(
    team_id: TeamID,
    members: t.Sequence[UserID],
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Team:
    """Replace the team's membership; the lock flag is enforced by the engine, not here.

    Raises:
        KeyError: If team_id does not correspond to a team
    """
    team = get(team_id, session=session)
    if team is None:
        raise KeyError(f"Team {team_id} not found")

    session.execute(sqla.delete(team_memberships).where(team_memberships.team_id == team_id))
    if members:
        session.execute(
            sqla.insert(team_memberships),
            [{"team_id": team_id, "user_id": m, "course_id": team.course_id} for m in members],
        )
    session.flush()
    result = get(team_id, session=session)
    assert result is not None
    return result


def lock_for_course(
    course_id: CourseID,
    *,
    locked: bool = True,
    session: Session = di.Provide["storage.persistent.session"],
) -> int:
    """Lock (or unlock) every team of the course; returns the number of teams changed."""
    stmt = sqla.update(teams).where((teams.course_id == course_id) & (teams.locked != locked)).values(locked=locked)
    result = session.execute(stmt)
    session.flush()
    return result.rowcount  # pyright: ignore[reportAttributeAccessIssue, reportUnknownVariableType]
