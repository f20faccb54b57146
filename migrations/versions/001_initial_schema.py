"""Initial schema for the evaluation and investment engine

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16

"""

import typing as t

from alembic import op
from sqlalchemy import func as f
from sqlalchemy.schema import CheckConstraint, Column, ForeignKey, UniqueConstraint
from sqlalchemy.types import Boolean, DateTime, Integer, Numeric, String, Text

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | t.Sequence[str] | None = None
depends_on: str | t.Sequence[str] | None = None

Key = String(22)
Timestamp = DateTime(timezone=True)


def timestamps() -> list[Column[t.Any]]:
    return [
        Column("create_time", Timestamp, server_default=f.now(), nullable=False),
        Column("update_time", Timestamp, server_default=f.now(), onupdate=f.now(), nullable=False),
    ]


def upgrade() -> None:
    # Users & courses
    op.create_table(
        "users",
        Column("user_id", Key, primary_key=True),
        Column("email", String, unique=True, nullable=False),
        Column("name", String, nullable=False),
        *timestamps(),
    )
    op.create_table(
        "courses",
        Column("course_id", Key, primary_key=True),
        Column("title", String, nullable=False),
        Column("code", String, unique=True, nullable=False),
        *timestamps(),
    )
    op.create_table(
        "course_enrollments",
        Column("course_id", Key, ForeignKey("courses.course_id", ondelete="CASCADE"), primary_key=True),
        Column("user_id", Key, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
        Column("role", String, nullable=False),
        Column("status", String, nullable=False),
        *timestamps(),
    )

    # Teams
    op.create_table(
        "teams",
        Column("team_id", Key, primary_key=True),
        Column("course_id", Key, ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=False, index=True),
        Column("name", String, nullable=False),
        Column("locked", Boolean, nullable=False, server_default="0"),
        *timestamps(),
        UniqueConstraint("course_id", "name"),
    )
    op.create_table(
        "team_memberships",
        Column("team_id", Key, ForeignKey("teams.team_id", ondelete="CASCADE"), primary_key=True),
        Column("user_id", Key, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
        Column("course_id", Key, ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=False),
        Column("create_time", Timestamp, server_default=f.now(), nullable=False),
        UniqueConstraint("course_id", "user_id"),
    )

    # Assignments & submissions
    op.create_table(
        "assignments",
        Column("assignment_id", Key, primary_key=True),
        Column("course_id", Key, ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=False, index=True),
        Column("title", String, nullable=False),
        Column("distribution_mode", String, nullable=False),
        Column("due_at", Timestamp, nullable=True),
        Column("is_evaluation_active", Boolean, nullable=False, server_default="0"),
        Column("evaluation_start_at", Timestamp, nullable=True),
        Column("evaluation_due_at", Timestamp, nullable=True),
        Column("evaluations_per_evaluator", Integer, nullable=True),
        *timestamps(),
    )
    op.create_table(
        "submissions",
        Column("submission_id", Key, primary_key=True),
        Column("team_id", Key, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False),
        Column(
            "assignment_id",
            Key,
            ForeignKey("assignments.assignment_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        Column("status", String, nullable=False),
        Column("submitted_at", Timestamp, nullable=True),
        Column("primary_link", Text, nullable=True),
        *timestamps(),
        UniqueConstraint("team_id", "assignment_id"),
    )

    # Evaluations & investments
    op.create_table(
        "evaluation_assignments",
        Column("evaluation_id", Key, primary_key=True),
        Column(
            "assignment_id",
            Key,
            ForeignKey("assignments.assignment_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        Column("evaluated_team_id", Key, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False),
        Column("submission_id", Key, ForeignKey("submissions.submission_id", ondelete="CASCADE"), nullable=False),
        Column("status", String, nullable=False),
        Column("evaluator_student_id", Key, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=True),
        Column("evaluator_team_id", Key, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=True),
        Column("due_at", Timestamp, nullable=True),
        Column("completed_at", Timestamp, nullable=True),
        *timestamps(),
        CheckConstraint(
            "(evaluator_student_id IS NULL) <> (evaluator_team_id IS NULL)",
            name="evaluation_assignments_one_evaluator",
        ),
        UniqueConstraint("assignment_id", "evaluator_student_id", "evaluated_team_id"),
        UniqueConstraint("assignment_id", "evaluator_team_id", "evaluated_team_id"),
    )
    op.create_table(
        "investments",
        Column("investment_id", Key, primary_key=True),
        Column(
            "assignment_id",
            Key,
            ForeignKey("assignments.assignment_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        Column("investor_id", Key, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False),
        Column("team_id", Key, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False),
        Column("tokens", Integer, nullable=False),
        Column("rank", Integer, nullable=False),
        Column("is_incomplete", Boolean, nullable=False, server_default="0"),
        Column("comment", Text, nullable=False, server_default=""),
        Column("create_time", Timestamp, server_default=f.now(), nullable=False),
        UniqueConstraint("investor_id", "assignment_id", "team_id"),
        CheckConstraint("tokens >= 0", name="investments_tokens_nonnegative"),
    )

    # Grades & interest
    op.create_table(
        "grades",
        Column("grade_id", Key, primary_key=True),
        Column(
            "assignment_id",
            Key,
            ForeignKey("assignments.assignment_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        Column("team_id", Key, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False),
        Column("submission_id", Key, ForeignKey("submissions.submission_id", ondelete="CASCADE"), nullable=False),
        Column("trimmed_mean", Numeric(6, 2), nullable=False),
        Column("tier", String, nullable=False),
        Column("percentage", Integer, nullable=False),
        Column("status", String, nullable=False),
        Column("total_investments", Integer, nullable=False, server_default="0"),
        Column("manual_override", Boolean, nullable=False, server_default="0"),
        Column("original_tier", String, nullable=True),
        Column("original_percentage", Integer, nullable=True),
        Column("admin_notes", Text, nullable=True),
        Column("reviewed_by", Key, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        Column("reviewed_at", Timestamp, nullable=True),
        Column("published_at", Timestamp, nullable=True),
        *timestamps(),
        UniqueConstraint("assignment_id", "team_id"),
    )
    op.create_table(
        "interest_records",
        Column("interest_id", Key, primary_key=True),
        Column("student_id", Key, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True),
        Column("assignment_id", Key, ForeignKey("assignments.assignment_id", ondelete="CASCADE"), nullable=False),
        Column("team_id", Key, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False),
        Column("tokens_invested", Integer, nullable=False),
        Column("tier", String, nullable=False),
        Column("interest_earned", Numeric(8, 2), nullable=False),
        Column("create_time", Timestamp, server_default=f.now(), nullable=False),
        UniqueConstraint("student_id", "assignment_id", "team_id"),
    )


def downgrade() -> None:
    for table in (
        "interest_records",
        "grades",
        "investments",
        "evaluation_assignments",
        "submissions",
        "assignments",
        "team_memberships",
        "teams",
        "course_enrollments",
        "courses",
        "users",
    ):
        op.drop_table(table)
