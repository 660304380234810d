"""ORM models backing the syllabus tracker."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin, utcnow

JSONType = JSON


def _uuid() -> str:
    return str(uuid.uuid4())


class SubjectModel(TimestampMixin, Base):
    __tablename__ = "subjects"
    __table_args__ = (Index("ix_subjects_class", "class_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    chapters: Mapped[list["ChapterModel"]] = relationship(
        back_populates="subject",
        cascade="all, delete-orphan",
        order_by="ChapterModel.number",
    )
    progress: Mapped[Optional["ProgressModel"]] = relationship(
        back_populates="subject", cascade="all, delete-orphan", uselist=False
    )
    tasks: Mapped[list["TaskModel"]] = relationship(
        back_populates="subject", cascade="all, delete-orphan"
    )


class ChapterModel(TimestampMixin, Base):
    __tablename__ = "chapters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="not_started", nullable=False)

    subject: Mapped[SubjectModel] = relationship(back_populates="chapters")
    topics: Mapped[list["TopicModel"]] = relationship(
        back_populates="chapter",
        cascade="all, delete-orphan",
        order_by="TopicModel.deadline",
    )


class TopicModel(TimestampMixin, Base):
    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    chapter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    deadline: Mapped[date] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    chapter: Mapped[ChapterModel] = relationship(back_populates="topics")


class ProgressModel(Base):
    __tablename__ = "progress"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    total_chapters: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_chapters: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_topics: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_topics: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    percentage_complete: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_on_track: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    subject: Mapped[SubjectModel] = relationship(back_populates="progress")


class TaskModel(TimestampMixin, Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_pending_lookup", "class_id", "subject_id", "type", "completed"),
        Index("ix_tasks_source", "source_kind", "source_id"),
        Index("ix_tasks_date", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    subject_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    source_kind: Mapped[str | None] = mapped_column(String(16), nullable=True)
    source_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    task_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), default="medium", nullable=False)
    task_type: Mapped[str] = mapped_column("type", String(16), default="daily", nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    subject: Mapped[SubjectModel] = relationship(back_populates="tasks")


class ScheduledJobModel(TimestampMixin, Base):
    __tablename__ = "scheduled_jobs"
    __table_args__ = (Index("ix_scheduled_jobs_active", "is_active"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_type: Mapped[str] = mapped_column(String(32), nullable=False)
    report_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    format: Mapped[str | None] = mapped_column(String(16), nullable=True)
    recipients: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    filters: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    task_scope: Mapped[str | None] = mapped_column(String(16), nullable=True)
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


__all__ = [
    "ChapterModel",
    "ProgressModel",
    "ScheduledJobModel",
    "SubjectModel",
    "TaskModel",
    "TopicModel",
]
