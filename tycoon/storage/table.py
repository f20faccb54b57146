import datetime
import decimal

from sqlalchemy import CheckConstraint, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, MappedAsDataclass
from sqlalchemy.types import Numeric, Text

from tycoon.model import AssignmentID, CourseID, EvaluationID, GradeID, InterestRecordID, InvestmentID, SubmissionID, \
    TeamID, UserID

from .type import ShortUUIDKeyType, UTCDateTime


class base(MappedAsDataclass, DeclarativeBase):
    type_annotation_map = {
        UserID: ShortUUIDKeyType(UserID),
        CourseID: ShortUUIDKeyType(CourseID),
        TeamID: ShortUUIDKeyType(TeamID),
        AssignmentID: ShortUUIDKeyType(AssignmentID),
        SubmissionID: ShortUUIDKeyType(SubmissionID),
        EvaluationID: ShortUUIDKeyType(EvaluationID),
        InvestmentID: ShortUUIDKeyType(InvestmentID),
        GradeID: ShortUUIDKeyType(GradeID),
        InterestRecordID: ShortUUIDKeyType(InterestRecordID),
        datetime.datetime: UTCDateTime(),
    }


# Users & Courses


class users(base):
    __tablename__ = "users"

    user_id: Mapped[UserID] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(unique=True)
    name: Mapped[str]
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


class courses(base):
    __tablename__ = "courses"

    course_id: Mapped[CourseID] = mapped_column(primary_key=True)
    title: Mapped[str]
    code: Mapped[str] = mapped_column(unique=True)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


class course_enrollments(base):
    __tablename__ = "course_enrollments"

    course_id: Mapped[CourseID] = mapped_column(ForeignKey("courses.course_id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[UserID] = mapped_column(ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    role: Mapped[str]
    status: Mapped[str]
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


# Teams


class teams(base):
    __tablename__ = "teams"
    __table_args__ = (UniqueConstraint("course_id", "name"),)

    team_id: Mapped[TeamID] = mapped_column(primary_key=True)
    course_id: Mapped[CourseID] = mapped_column(ForeignKey("courses.course_id", ondelete="CASCADE"), index=True)
    name: Mapped[str]
    locked: Mapped[bool] = mapped_column(default=False)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


class team_memberships(base):
    __tablename__ = "team_memberships"
    # a student belongs to at most one team per course
    __table_args__ = (UniqueConstraint("course_id", "user_id"),)

    team_id: Mapped[TeamID] = mapped_column(ForeignKey("teams.team_id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[UserID] = mapped_column(ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    course_id: Mapped[CourseID] = mapped_column(ForeignKey("courses.course_id", ondelete="CASCADE"))
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())


# Assignments & Submissions


class assignments(base):
    __tablename__ = "assignments"

    assignment_id: Mapped[AssignmentID] = mapped_column(primary_key=True)
    course_id: Mapped[CourseID] = mapped_column(ForeignKey("courses.course_id", ondelete="CASCADE"), index=True)
    title: Mapped[str]
    distribution_mode: Mapped[str]
    due_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    is_evaluation_active: Mapped[bool] = mapped_column(default=False)
    evaluation_start_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    evaluation_due_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    evaluations_per_evaluator: Mapped[int | None] = mapped_column(default=None)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


class submissions(base):
    __tablename__ = "submissions"
    __table_args__ = (UniqueConstraint("team_id", "assignment_id"),)

    submission_id: Mapped[SubmissionID] = mapped_column(primary_key=True)
    team_id: Mapped[TeamID] = mapped_column(ForeignKey("teams.team_id", ondelete="CASCADE"))
    assignment_id: Mapped[AssignmentID] = mapped_column(
        ForeignKey("assignments.assignment_id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str]
    submitted_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    primary_link: Mapped[str | None] = mapped_column(Text, default=None)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


# Evaluations & Investments


class evaluation_assignments(base):
    __tablename__ = "evaluation_assignments"
    __table_args__ = (
        CheckConstraint(
            "(evaluator_student_id IS NULL) <> (evaluator_team_id IS NULL)",
            name="evaluation_assignments_one_evaluator",
        ),
        UniqueConstraint("assignment_id", "evaluator_student_id", "evaluated_team_id"),
        UniqueConstraint("assignment_id", "evaluator_team_id", "evaluated_team_id"),
    )

    evaluation_id: Mapped[EvaluationID] = mapped_column(primary_key=True)
    assignment_id: Mapped[AssignmentID] = mapped_column(
        ForeignKey("assignments.assignment_id", ondelete="CASCADE"), index=True
    )
    evaluated_team_id: Mapped[TeamID] = mapped_column(ForeignKey("teams.team_id", ondelete="CASCADE"))
    submission_id: Mapped[SubmissionID] = mapped_column(ForeignKey("submissions.submission_id", ondelete="CASCADE"))
    status: Mapped[str]
    evaluator_student_id: Mapped[UserID | None] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), default=None
    )
    evaluator_team_id: Mapped[TeamID | None] = mapped_column(
        ForeignKey("teams.team_id", ondelete="CASCADE"), default=None
    )
    due_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    completed_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


class investments(base):
    __tablename__ = "investments"
    __table_args__ = (
        UniqueConstraint("investor_id", "assignment_id", "team_id"),
        CheckConstraint("tokens >= 0", name="investments_tokens_nonnegative"),
    )

    investment_id: Mapped[InvestmentID] = mapped_column(primary_key=True)
    assignment_id: Mapped[AssignmentID] = mapped_column(
        ForeignKey("assignments.assignment_id", ondelete="CASCADE"), index=True
    )
    investor_id: Mapped[UserID] = mapped_column(ForeignKey("users.user_id", ondelete="CASCADE"))
    team_id: Mapped[TeamID] = mapped_column(ForeignKey("teams.team_id", ondelete="CASCADE"))
    tokens: Mapped[int]
    rank: Mapped[int]
    is_incomplete: Mapped[bool] = mapped_column(default=False)
    comment: Mapped[str] = mapped_column(Text, default="")
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())


# Grades & Interest


class grades(base):
    __tablename__ = "grades"
    __table_args__ = (UniqueConstraint("assignment_id", "team_id"),)

    grade_id: Mapped[GradeID] = mapped_column(primary_key=True)
    assignment_id: Mapped[AssignmentID] = mapped_column(
        ForeignKey("assignments.assignment_id", ondelete="CASCADE"), index=True
    )
    team_id: Mapped[TeamID] = mapped_column(ForeignKey("teams.team_id", ondelete="CASCADE"))
    submission_id: Mapped[SubmissionID] = mapped_column(ForeignKey("submissions.submission_id", ondelete="CASCADE"))
    trimmed_mean: Mapped[decimal.Decimal] = mapped_column(Numeric(6, 2))
    tier: Mapped[str]
    percentage: Mapped[int]
    status: Mapped[str]
    total_investments: Mapped[int] = mapped_column(default=0)
    manual_override: Mapped[bool] = mapped_column(default=False)
    original_tier: Mapped[str | None] = mapped_column(default=None)
    original_percentage: Mapped[int | None] = mapped_column(default=None)
    admin_notes: Mapped[str | None] = mapped_column(Text, default=None)
    reviewed_by: Mapped[UserID | None] = mapped_column(ForeignKey("users.user_id", ondelete="SET NULL"), default=None)
    reviewed_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    published_at: Mapped[datetime.datetime | None] = mapped_column(default=None)
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
    update_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now(), onupdate=func.now())


class interest_records(base):
    __tablename__ = "interest_records"
    __table_args__ = (UniqueConstraint("student_id", "assignment_id", "team_id"),)

    interest_id: Mapped[InterestRecordID] = mapped_column(primary_key=True)
    student_id: Mapped[UserID] = mapped_column(ForeignKey("users.user_id", ondelete="CASCADE"), index=True)
    assignment_id: Mapped[AssignmentID] = mapped_column(ForeignKey("assignments.assignment_id", ondelete="CASCADE"))
    team_id: Mapped[TeamID] = mapped_column(ForeignKey("teams.team_id", ondelete="CASCADE"))
    tokens_invested: Mapped[int]
    tier: Mapped[str]
    interest_earned: Mapped[decimal.Decimal] = mapped_column(Numeric(8, 2))
    create_time: Mapped[datetime.datetime] = mapped_column(default=None, server_default=func.now())
