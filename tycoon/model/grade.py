import datetime
import decimal
import enum

from .base import BaseModel, WithTimestamps
from .id import AssignmentID, GradeID, SubmissionID, TeamID, UserID


class Tier(enum.Enum):
    High = "high"
    Median = "median"
    Low = "low"
    Incomplete = "incomplete"


class GradeStatus(enum.Enum):
    Draft = "draft"
    Published = "published"


class Grade(WithTimestamps):
    grade_id: GradeID
    assignment_id: AssignmentID
    team_id: TeamID
    submission_id: SubmissionID

    trimmed_mean: decimal.Decimal
    tier: Tier
    percentage: int
    total_investments: int = 0

    status: GradeStatus = GradeStatus.Draft

    # reviewer overrides
    manual_override: bool = False
    original_tier: Tier | None = None
    original_percentage: int | None = None
    admin_notes: str | None = None
    reviewed_by: UserID | None = None
    reviewed_at: datetime.datetime | None = None
    published_at: datetime.datetime | None = None

    @property
    def is_published(self) -> bool:
        return self.status is GradeStatus.Published


class GradeStatistics(BaseModel):
    total_teams: int
    high: int
    median: int
    low: int
    incomplete: int
    mean_investment: decimal.Decimal
    total_investments: int


class TieringPolicy(enum.Enum):
    """How a team's trimmed mean becomes a tier."""

    Absolute = "absolute"
    Relative = "relative"
