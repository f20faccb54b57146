"""Outbound notices to students once grades are published.

Delivery channels are external to the engine; grading never calls these
directly, only the publishing command does.
"""

from __future__ import annotations

import logging
import typing as t

from tycoon.model import Grade, Team

logger = logging.getLogger(__name__)


class Notifier(t.Protocol):
    def grades_published(self, grades: t.Sequence[Grade], teams: t.Mapping[str, Team]) -> None: ...


class LogNotifier(object):
    """Writes one log line per notified team member."""

    def grades_published(self, grades: t.Sequence[Grade], teams: t.Mapping[str, Team]) -> None:
        for grade in grades:
            team = teams.get(grade.team_id)
            if team is None:
                logger.warning("no team for published grade", extra={"grade_id": grade.grade_id})
                continue
            for member in team.members:
                logger.info(
                    "grade published",
                    extra={
                        "user_id": member,
                        "team_id": team.team_id,
                        "assignment_id": grade.assignment_id,
                        "tier": grade.tier.value,
                        "percentage": grade.percentage,
                    },
                )
