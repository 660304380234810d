"""Initial syllabus, progress, task and scheduled job schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_01_initial_syllabus_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=True),
        sa.Column("deadline", sa.Date(), nullable=True),
    )
    op.create_index("ix_subjects_class", "subjects", ["class_id"])

    op.create_table(
        "chapters",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("deadline", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="not_started"),
    )
    op.create_index("ix_chapters_subject_id", "chapters", ["subject_id"])

    op.create_table(
        "topics",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("chapter_id", sa.String(length=36), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("deadline", sa.Date(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_topics_chapter_id", "topics", ["chapter_id"])

    op.create_table(
        "progress",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("total_chapters", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_chapters", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_topics", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_topics", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("percentage_complete", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_on_track", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_kind", sa.String(length=16), nullable=True),
        sa.Column("source_id", sa.String(length=36), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default="medium"),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="daily"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_tasks_pending_lookup", "tasks", ["class_id", "subject_id", "type", "completed"])
    op.create_index("ix_tasks_source", "tasks", ["source_kind", "source_id"])
    op.create_index("ix_tasks_date", "tasks", ["date"])

    op.create_table(
        "scheduled_jobs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("job_type", sa.String(length=32), nullable=False),
        sa.Column("report_type", sa.String(length=16), nullable=True),
        sa.Column("format", sa.String(length=16), nullable=True),
        sa.Column("recipients", sa.JSON(), nullable=False),
        sa.Column("filters", sa.JSON(), nullable=False),
        sa.Column("task_scope", sa.String(length=16), nullable=True),
        sa.Column("frequency", sa.String(length=16), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("day_of_month", sa.Integer(), nullable=True),
        sa.Column("time", sa.String(length=5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_scheduled_jobs_active", "scheduled_jobs", ["is_active"])


def downgrade() -> None:
    op.drop_index("ix_scheduled_jobs_active", table_name="scheduled_jobs")
    op.drop_table("scheduled_jobs")
    op.drop_index("ix_tasks_date", table_name="tasks")
    op.drop_index("ix_tasks_source", table_name="tasks")
    op.drop_index("ix_tasks_pending_lookup", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("progress")
    op.drop_index("ix_topics_chapter_id", table_name="topics")
    op.drop_table("topics")
    op.drop_index("ix_chapters_subject_id", table_name="chapters")
    op.drop_table("chapters")
    op.drop_index("ix_subjects_class", table_name="subjects")
    op.drop_table("subjects")
