from .base import WithCtime
from .id import AssignmentID, InvestmentID, TeamID, UserID


class Investment(WithCtime):
    investment_id: InvestmentID
    assignment_id: AssignmentID
    investor_id: UserID
    team_id: TeamID

    tokens: int
    is_incomplete: bool = False
    comment: str = ""

    # 1-based order in which the investor placed this investment
    rank: int = 1
