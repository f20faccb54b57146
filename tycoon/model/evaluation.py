from __future__ import annotations

import datetime
import enum
import typing as t

import pydantic as p

from .base import BaseModel, WithTimestamps
from .id import AssignmentID, EvaluationID, SubmissionID, TeamID, UserID


class EvaluationStatus(enum.Enum):
    Assigned = "assigned"
    Completed = "completed"
    Late = "late"
    Missed = "missed"


class StudentEvaluator(BaseModel):
    kind: t.Literal["student"] = "student"
    user_id: UserID

    @property
    def key(self) -> UserID:
        return self.user_id


class TeamEvaluator(BaseModel):
    kind: t.Literal["team"] = "team"
    team_id: TeamID

    @property
    def key(self) -> TeamID:
        return self.team_id


Evaluator = t.Annotated[StudentEvaluator | TeamEvaluator, p.Field(discriminator="kind")]


class EvaluationAssignment(WithTimestamps):
    evaluation_id: EvaluationID
    assignment_id: AssignmentID
    evaluator: Evaluator
    evaluated_team_id: TeamID
    submission_id: SubmissionID

    status: EvaluationStatus = EvaluationStatus.Assigned
    due_at: datetime.datetime | None = None
    completed_at: datetime.datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status is EvaluationStatus.Assigned
