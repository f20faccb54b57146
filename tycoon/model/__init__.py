__all__ = [
    # Base
    "BaseModel",
    "WithCtime",
    "WithMtime",
    "WithTimestamps",
    # Enums
    "DeploymentEnvironment",
    # ID Types
    "UserID",
    "CourseID",
    "TeamID",
    "AssignmentID",
    "SubmissionID",
    "EvaluationID",
    "InvestmentID",
    "GradeID",
    "InterestRecordID",
    # Courses
    "User",
    "Course",
    "Enrollment",
    "EnrollmentRole",
    "EnrollmentStatus",
    # Teams
    "Team",
    # Assignments
    "Assignment",
    "DistributionMode",
    # Submissions
    "Submission",
    "SubmissionStatus",
    # Evaluations
    "EvaluationAssignment",
    "EvaluationStatus",
    "Evaluator",
    "StudentEvaluator",
    "TeamEvaluator",
    # Investments
    "Investment",
    # Grades
    "Grade",
    "GradeStatistics",
    "GradeStatus",
    "Tier",
    "TieringPolicy",
    # Interest
    "InterestRecord",
    "InterestSummary",
]

from .assignment import Assignment, DistributionMode
from .base import BaseModel, WithCtime, WithMtime, WithTimestamps
from .course import Course, Enrollment, EnrollmentRole, EnrollmentStatus, User
from .enum import DeploymentEnvironment
from .evaluation import EvaluationAssignment, EvaluationStatus, Evaluator, StudentEvaluator, TeamEvaluator
from .grade import Grade, GradeStatistics, GradeStatus, Tier, TieringPolicy
from .id import AssignmentID, CourseID, EvaluationID, GradeID, InterestRecordID, InvestmentID, SubmissionID, TeamID, \
    UserID
from .interest import InterestRecord, InterestSummary
from .investment import Investment
from .submission import Submission, SubmissionStatus
from .team import Team
