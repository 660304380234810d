"""Repositories wrapping SQLAlchemy access for the tracking core."""

from .progress import ProgressRepository, progress_store
from .scheduled_jobs import ScheduledJobRepository, scheduled_jobs
from .syllabus import SyllabusRepository, syllabus
from .tasks import TaskFilter, TaskRepository, task_store

__all__ = [
    "ProgressRepository",
    "ScheduledJobRepository",
    "SyllabusRepository",
    "TaskFilter",
    "TaskRepository",
    "progress_store",
    "scheduled_jobs",
    "syllabus",
    "task_store",
]
