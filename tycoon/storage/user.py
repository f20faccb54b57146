from __future__ import annotations

import typing as t

import sqlalchemy as sqla

from tycoon.core import di
from tycoon.model import User, UserID

from . import Session
from .table import users


@t.overload
def get(
    user_id: UserID,
    *,
    session: Session = ...,
) -> User | None: ...


@t.overload
def get(
    user_id: None = None,
    *,
    email: str,
    session: Session = ...,
) -> User | None: ...


def get(
    user_id: UserID | None = None,
    *,
    email: str | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> User | None:
    """Get a user by ID or email.

    Exactly one lookup key must be provided.
    """
    if user_id is not None:
        stmt = sqla.select(users.__table__).where(users.user_id == user_id)
    elif email is not None:
        stmt = sqla.select(users.__table__).where(users.email == email.lower())
    else:
        raise ValueError("exactly one of user_id or email must be provided")

    row = session.execute(stmt).mappings().one_or_none()
    return User(**row) if row else None


def find(
    *,
    user_ids: t.Collection[UserID] | None = None,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[User, ...]:
    stmt = sqla.select(users.__table__).order_by(users.name)
    if user_ids is not None:
        stmt = stmt.where(users.user_id.in_(user_ids))
    rows = session.execute(stmt).mappings().all()
    return tuple(User(**row) for row in rows)


def create(
    *,
    email: str,
    name: str,
    session: Session = di.Provide["storage.persistent.session"],
) -> User:
    user_id = UserID()
    session.execute(sqla.insert(users).values(user_id=user_id, email=email.lower(), name=name))
    session.flush()
    result = get(user_id, session=session)
    assert result is not None
    return result


def lock(
    user_id: UserID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> bool:
    """Lock the user's row until the transaction ends; False if there is no such user.

    Writers that must see each other's inserts, such as the investment ledger,
    take this lock first. SQLite ignores FOR UPDATE and serializes writers itself.
    """
    stmt = sqla.select(users.user_id).where(users.user_id == user_id).with_for_update()
    return session.execute(stmt).scalar_one_or_none() is not None
