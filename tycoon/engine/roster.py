"""Who evaluates, and what there is to evaluate, for one assignment."""

from __future__ import annotations

import logging
import typing as t

from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.model import Assignment, AssignmentID, BaseModel, DistributionMode, Evaluator, StudentEvaluator, \
    Submission, SubmissionStatus, Team, TeamEvaluator, TeamID, UserID
from tycoon.storage import assignment as assignment_storage
from tycoon.storage import course as course_storage
from tycoon.storage import Session
from tycoon.storage import submission as submission_storage
from tycoon.storage import team as team_storage

from .errors import InsufficientData, NotFound, TeamLocked

logger = logging.getLogger(__name__)


class Roster(BaseModel):
    assignment: Assignment
    mode: DistributionMode
    evaluators: tuple[Evaluator, ...]
    submissions: tuple[Submission, ...]
    teams: dict[TeamID, Team]

    def team_of(self, user_id: UserID) -> Team | None:
        for team in self.teams.values():
            if team.has_member(user_id):
                return team
        return None

    @property
    def submitting_teams(self) -> frozenset[TeamID]:
        return frozenset(s.team_id for s in self.submissions)


def evaluators_for(
    mode: DistributionMode, students: t.Sequence[UserID], teams: t.Iterable[Team]
) -> tuple[Evaluator, ...]:
    match mode:
        case DistributionMode.Student:
            return tuple(StudentEvaluator(user_id=s) for s in students)
        case DistributionMode.Team:
            return tuple(TeamEvaluator(team_id=team.team_id) for team in teams if team.members)


def resolve(
    assignment_id: AssignmentID,
    *,
    mode: DistributionMode | None = None,
    session: Session = di.Provide["storage.persistent.session"],
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> Roster:
    """Load the evaluators and the evaluable submissions of an assignment.

    Only submitted submissions count. The mode defaults to the one stored on
    the assignment.

    Raises:
        NotFound: If the assignment does not exist
        InsufficientData: If fewer than the configured number of teams have
            submitted, or nobody is eligible to evaluate
    """
    assignment = assignment_storage.get(assignment_id, session=session)
    if assignment is None:
        raise NotFound("assignment not found", assignment_id=assignment_id)
    mode = mode or assignment.distribution_mode

    teams = {team.team_id: team for team in team_storage.find(course_id=assignment.course_id, session=session)}
    submissions = tuple(
        s
        for s in submission_storage.find(
            assignment_id=assignment_id, status=SubmissionStatus.Submitted, session=session
        )
        if s.team_id in teams
    )
    students = course_storage.active_students(assignment.course_id, session=session)
    evaluators = evaluators_for(mode, students, teams.values())

    submitting = {s.team_id for s in submissions}
    minimum = config.distribution.min_submitting_teams
    if len(submitting) < minimum:
        raise InsufficientData(
            f"at least {minimum} teams must have submitted", assignment_id=assignment_id, submitted=len(submitting)
        )
    if not evaluators:
        raise InsufficientData("no eligible evaluators", assignment_id=assignment_id, mode=mode.value)

    logger.debug(
        "resolved roster",
        extra={
            "assignment_id": assignment_id,
            "mode": mode.value,
            "evaluators": len(evaluators),
            "submissions": len(submissions),
        },
    )
    return Roster(assignment=assignment, mode=mode, evaluators=evaluators, submissions=submissions, teams=teams)


def change_members(
    team_id: TeamID,
    members: t.Sequence[UserID],
    *,
    session: Session = di.Provide["storage.persistent.session"],
) -> Team:
    """Replace a team's members unless an evaluation round has frozen the team.

    Raises:
        NotFound: If the team does not exist
        TeamLocked: If the team is locked
    """
    with session.begin():
        team = team_storage.get(team_id, session=session)
        if team is None:
            raise NotFound("team not found", team_id=team_id)
        if team.locked:
            raise TeamLocked("team membership is locked", team_id=team_id)
        updated = team_storage.set_members(team_id, members, session=session)
    logger.info("team membership changed", extra={"team_id": team_id, "members": list(members)})
    return updated
