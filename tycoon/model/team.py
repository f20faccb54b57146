from .base import WithTimestamps
from .id import CourseID, TeamID, UserID


class Team(WithTimestamps):
    team_id: TeamID
    course_id: CourseID
    name: str
    members: tuple[UserID, ...] = ()

    # membership may not change once an evaluation round has started
    locked: bool = False

    def has_member(self, user_id: UserID) -> bool:
        return user_id in self.members
