import datetime
import enum

from .base import WithTimestamps
from .id import AssignmentID, SubmissionID, TeamID


class SubmissionStatus(enum.Enum):
    Draft = "draft"
    Submitted = "submitted"


class Submission(WithTimestamps):
    submission_id: SubmissionID
    team_id: TeamID
    assignment_id: AssignmentID
    status: SubmissionStatus = SubmissionStatus.Draft
    submitted_at: datetime.datetime | None = None

    primary_link: str | None = None
