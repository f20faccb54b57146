"""Reviewer adjustments and publication of grades."""

from __future__ import annotations

import logging
import typing as t

from tycoon.core import di
from tycoon.core.provider import TimestampProvider
from tycoon.model import Grade, GradeID, GradeStatus, Tier, UserID
from tycoon.storage import grade as grade_storage
from tycoon.storage import Session

from .errors import NotFound

logger = logging.getLogger(__name__)


def _require(grade_id: GradeID, session: Session) -> Grade:
    grade = grade_storage.get(grade_id, session=session)
    if grade is None:
        raise NotFound("grade not found", grade_id=grade_id)
    return grade


def override(
    grade_id: GradeID,
    *,
    tier: Tier,
    percentage: int,
    reviewed_by: UserID,
    notes: str | None = None,
    session: Session = di.Provide["storage.persistent.session"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> Grade:
    """Replace a grade's tier and percentage by hand.

    The computed values are kept the first time a grade is overridden, so a
    later reset can restore them.
    """
    if not 0 <= percentage <= 100:
        raise ValueError(f"percentage must be between 0 and 100, got {percentage}")

    with session.begin():
        grade = _require(grade_id, session)
        kwargs: dict[str, t.Any] = {}
        if not grade.manual_override:
            kwargs.update(original_tier=grade.tier, original_percentage=grade.percentage)
        grade_storage.update(
            grade_id,
            tier=tier,
            percentage=percentage,
            manual_override=True,
            admin_notes=notes,
            reviewed_by=reviewed_by,
            reviewed_at=utcnow(),
            session=session,
            **kwargs,
        )
        result = _require(grade_id, session)

    logger.info(
        "grade overridden",
        extra={
            "grade_id": grade_id,
            "tier": tier.value,
            "percentage": percentage,
            "original_tier": result.original_tier.value if result.original_tier else None,
            "reviewed_by": reviewed_by,
        },
    )
    return result


def reset(
    grade_id: GradeID,
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Grade:
    """Undo any override and return the grade to draft."""
    with session.begin():
        grade = _require(grade_id, session)
        if grade.manual_override:
            assert grade.original_tier is not None and grade.original_percentage is not None
            grade_storage.update(
                grade_id,
                tier=grade.original_tier,
                percentage=grade.original_percentage,
                manual_override=False,
                original_tier=None,
                original_percentage=None,
                admin_notes=None,
                session=session,
            )
        grade_storage.set_status([grade_id], GradeStatus.Draft, session=session)
        result = _require(grade_id, session)

    logger.info("grade reset", extra={"grade_id": grade_id, "tier": result.tier.value})
    return result


def publish(
    grade_ids: t.Collection[GradeID],
    *,
    reviewed_by: UserID,
    session: Session = di.Provide["storage.persistent.session"],
    utcnow: TimestampProvider = di.Provide["utcnow"],
) -> tuple[Grade, ...]:
    """Make grades visible to students. Already published grades are left as they are.

    Raises:
        NotFound: If any of the grades does not exist; nothing is published then
    """
    with session.begin():
        found = grade_storage.find(grade_ids=grade_ids, session=session)
        if missing := set(grade_ids) - {g.grade_id for g in found}:
            raise NotFound("grades not found", grade_ids=sorted(missing))
        n = grade_storage.set_status(
            grade_ids, GradeStatus.Published, reviewed_by=reviewed_by, at=utcnow(), session=session
        )
        result = grade_storage.find(grade_ids=grade_ids, session=session)

    logger.info("grades published", extra={"requested": len(grade_ids), "published": n, "reviewed_by": reviewed_by})
    return result


def unpublish(
    grade_ids: t.Collection[GradeID],
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> tuple[Grade, ...]:
    with session.begin():
        n = grade_storage.set_status(grade_ids, GradeStatus.Draft, session=session)
        result = grade_storage.find(grade_ids=grade_ids, session=session)
    logger.info("grades unpublished", extra={"requested": len(grade_ids), "unpublished": n})
    return result
