import datetime
import enum

from .base import WithTimestamps
from .id import AssignmentID, CourseID


class DistributionMode(enum.Enum):
    """Who evaluates: every enrolled student, or every team as a unit."""

    Student = "student"
    Team = "team"


class Assignment(WithTimestamps):
    assignment_id: AssignmentID
    course_id: CourseID
    title: str

    due_at: datetime.datetime | None = None

    is_evaluation_active: bool = False
    evaluation_start_at: datetime.datetime | None = None
    evaluation_due_at: datetime.datetime | None = None
    distribution_mode: DistributionMode = DistributionMode.Student
    evaluations_per_evaluator: int | None = None
