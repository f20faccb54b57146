import decimal

from .base import BaseModel, WithCtime
from .grade import Tier
from .id import AssignmentID, InterestRecordID, TeamID, UserID


class InterestRecord(WithCtime):
    interest_id: InterestRecordID
    student_id: UserID
    assignment_id: AssignmentID
    team_id: TeamID

    tokens_invested: int
    tier: Tier
    interest_earned: decimal.Decimal


class InterestSummary(BaseModel):
    student_id: UserID
    total_interest: decimal.Decimal
    bonus_fraction: decimal.Decimal
    max_bonus_percent: int
