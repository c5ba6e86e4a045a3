"""initial schema

Revision ID: 3b1e9c7d2a40
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c7d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID = postgresql.UUID(as_uuid=True)
_TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="student"),
    )
    op.create_table(
        "courses",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("instructor_id", _UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", _TS, nullable=False),
    )
    op.create_index("ix_courses_instructor_id", "courses", ["instructor_id"])
    op.create_table(
        "course_modules",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    op.create_index("ix_course_modules_course_id", "course_modules", ["course_id"])
    op.create_table(
        "lessons",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("module_id", _UUID, sa.ForeignKey("course_modules.id"), nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_lessons_module_id", "lessons", ["module_id"])
    op.create_index("ix_lessons_course_id", "lessons", ["course_id"])
    op.create_table(
        "quizzes",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("lesson_id", _UUID, sa.ForeignKey("lessons.id"), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
    )
    op.create_index("ix_quizzes_course_id", "quizzes", ["course_id"])
    op.create_table(
        "quiz_attempts",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("quiz_id", _UUID, sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("student_id", _UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("created_at", _TS, nullable=False),
    )
    op.create_index("ix_quiz_attempts_quiz_id", "quiz_attempts", ["quiz_id"])
    op.create_table(
        "payments",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("student_id", _UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="completed"
        ),
        sa.Column("created_at", _TS, nullable=False),
    )
    op.create_index("ix_payments_course_id", "payments", ["course_id"])
    op.create_table(
        "course_progress",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("student_id", _UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="not_started"
        ),
        sa.Column(
            "completion_percentage", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("completed_lessons", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_lessons", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("started_at", _TS, nullable=False),
        sa.Column("last_accessed_at", _TS, nullable=False),
        sa.Column("completed_at", _TS, nullable=True),
        sa.Column(
            "certificate_earned", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.UniqueConstraint("student_id", "course_id"),
    )
    op.create_index("ix_course_progress_course_id", "course_progress", ["course_id"])
    op.create_table(
        "lesson_progress",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("student_id", _UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("lesson_id", _UUID, sa.ForeignKey("lessons.id"), nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("completed_at", _TS, nullable=True),
        sa.Column("watch_time", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", _TS, nullable=False),
        sa.Column("updated_at", _TS, nullable=False),
        sa.UniqueConstraint("student_id", "lesson_id"),
    )
    op.create_index(
        "ix_lesson_progress_course_updated",
        "lesson_progress",
        ["course_id", "updated_at"],
    )


def downgrade() -> None:
    op.drop_table("lesson_progress")
    op.drop_table("course_progress")
    op.drop_table("payments")
    op.drop_table("quiz_attempts")
    op.drop_table("quizzes")
    op.drop_table("lessons")
    op.drop_table("course_modules")
    op.drop_table("courses")
    op.drop_table("users")
