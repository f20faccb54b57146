from __future__ import annotations

import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.model import AssignmentID, Investment, InvestmentID, TeamID, UserID

from . import Session
from .table import investments


def get(
    investment_id: InvestmentID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Investment | None:
    stmt = sqla.select(investments.__table__).where(investments.investment_id == investment_id)
    row = session.execute(stmt).mappings().one_or_none()
    return Investment(**row) if row else None


def find(
    *,
    assignment_id: AssignmentID | None = None,
    investor_id: UserID | None = None,
    team_id: TeamID | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Investment, ...]:
    """Find investments in the order each investor placed them."""
    stmt = sqla.select(investments.__table__).order_by(
        investments.assignment_id, investments.investor_id, investments.rank
    )
    if assignment_id is not None:
        stmt = stmt.where(investments.assignment_id == assignment_id)
    if investor_id is not None:
        stmt = stmt.where(investments.investor_id == investor_id)
    if team_id is not None:
        stmt = stmt.where(investments.team_id == team_id)
    rows = session.execute(stmt).mappings().all()
    return tuple(Investment(**row) for row in rows)


def find_investors(
    *,
    assignment_id: AssignmentID,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[UserID, ...]:
    """Every student holding at least one investment in the assignment."""
    stmt = (
        sqla
        .select(investments.investor_id)
        .where(investments.assignment_id == assignment_id)
        .distinct()
        .order_by(investments.investor_id)
    )
    return tuple(session.execute(stmt).scalars().all())


def create(
    *,
    assignment_id: AssignmentID,
    investor_id: UserID,
    team_id: TeamID,
    tokens: int,
    rank: int,
    is_incomplete: bool = False,
    comment: str = "",
    session: Session = di.Provide["storage.persistent.session"],
) -> Investment:
    investment_id = InvestmentID()
    stmt = sqla.insert(investments).values(
        investment_id=investment_id,
        assignment_id=assignment_id,
        investor_id=investor_id,
        team_id=team_id,
        tokens=tokens,
        rank=rank,
        is_incomplete=is_incomplete,
        comment=comment,
    )
    session.execute(stmt)
    session.flush()
    result = get(investment_id, session=session)
    assert result is not None
    return result


def tokens_by_team(
    *,
    assignment_id: AssignmentID,
    session: Session = di.Provide["storage.persistent.session"],
) -> dict[TeamID, list[Investment]]:
    """The assignment's investments grouped by the team invested in."""
    grouped: dict[TeamID, list[Investment]] = {}
    for inv in find(assignment_id=assignment_id, session=session):
        grouped.setdefault(inv.team_id, []).append(inv)
    return grouped


def summary(
    *,
    assignment_id: AssignmentID,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[int, int]:
    """(number of investments, tokens invested) for the assignment."""
    stmt = sqla.select(sqla.func.count(), sqla.func.coalesce(sqla.func.sum(investments.tokens), 0)).where(
        investments.assignment_id == assignment_id
    )
    n, total = session.execute(stmt).one()
    return t.cast(int, n), t.cast(int, total)
