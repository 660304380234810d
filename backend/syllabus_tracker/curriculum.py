"""Value objects for the deadline tree, progress roll-up and generated tasks."""

from __future__ import annotations

import threading
from datetime import date, datetime, timezone
from typing import Iterator, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

ChapterStatus = Literal["not_started", "in_progress", "completed"]
Priority = Literal["low", "medium", "high"]
TaskType = Literal["daily", "weekly", "monthly"]
TaskScope = Literal["daily", "weekly", "monthly", "all"]
SourceKind = Literal["subject", "chapter", "topic"]


class TopicNode(BaseModel):
    id: str
    title: str
    deadline: date
    completed: bool = False
    completed_at: Optional[datetime] = None


class ChapterNode(BaseModel):
    id: str
    title: str
    number: int = 1
    deadline: Optional[date] = None
    status: ChapterStatus = "not_started"
    topics: List[TopicNode] = Field(default_factory=list)

    @property
    def derived_status(self) -> ChapterStatus:
        return chapter_status(self.topics)


class SubjectTree(BaseModel):
    """Read-only snapshot of Subject -> Chapter -> Topic, fetched once per operation."""

    id: str
    class_id: str
    name: str
    deadline: Optional[date] = None
    chapters: List[ChapterNode] = Field(default_factory=list)

    def iter_topics(self) -> Iterator[Tuple[ChapterNode, TopicNode]]:
        for chapter in self.chapters:
            for topic in chapter.topics:
                yield chapter, topic

    def topic_counts(self) -> Tuple[int, int]:
        total = 0
        completed = 0
        for _, topic in self.iter_topics():
            total += 1
            if topic.completed:
                completed += 1
        return total, completed

    @property
    def is_completed(self) -> bool:
        total, completed = self.topic_counts()
        return total > 0 and total == completed


def chapter_status(topics: List[TopicNode]) -> ChapterStatus:
    done = sum(1 for topic in topics if topic.completed)
    if topics and done == len(topics):
        return "completed"
    if done > 0:
        return "in_progress"
    return "not_started"


class SubjectProgress(BaseModel):
    subject_id: str
    total_chapters: int = 0
    completed_chapters: int = 0
    total_topics: int = 0
    completed_topics: int = 0
    percentage_complete: int = Field(default=0, ge=0, le=100)
    is_on_track: bool = True
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TaskCandidate(BaseModel):
    """A synthesized work item that has not yet passed the admission guard."""

    class_id: str
    subject_id: str
    task_date: date
    title: str
    priority: Priority
    task_type: TaskType
    notes: Optional[str] = None
    source_kind: Optional[SourceKind] = None
    source_id: Optional[str] = None


class TaskRecord(BaseModel):
    id: str
    class_id: str
    subject_id: str
    task_date: date
    title: str
    priority: Priority
    task_type: TaskType
    completed: bool = False
    notes: Optional[str] = None
    source_kind: Optional[SourceKind] = None
    source_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TaskGenerationConfig(BaseModel):
    """Runtime-tunable knobs consumed by the task synthesizer."""

    daily_tasks_enabled: bool = True
    weekly_tasks_enabled: bool = True
    monthly_tasks_enabled: bool = True
    days_before_deadline: int = Field(default=7, ge=0)
    priority_threshold: int = Field(default=3, ge=1)


class TaskConfigStore:
    """Process-local holder of the current task generation configuration.

    Readers receive copies, so a configuration value passed into a generation
    run cannot change underneath it when another request updates the store.
    """

    def __init__(self, initial: Optional[TaskGenerationConfig] = None) -> None:
        self._config = initial or TaskGenerationConfig()
        self._lock = threading.Lock()

    def get(self) -> TaskGenerationConfig:
        with self._lock:
            return self._config.model_copy()

    def update(self, **fields: object) -> TaskGenerationConfig:
        changes = {key: value for key, value in fields.items() if value is not None}
        with self._lock:
            merged = self._config.model_dump()
            merged.update(changes)
            self._config = TaskGenerationConfig.model_validate(merged)
            return self._config.model_copy()

    def reset(self, config: Optional[TaskGenerationConfig] = None) -> None:
        with self._lock:
            self._config = config or TaskGenerationConfig()


def _config_from_settings() -> TaskGenerationConfig:
    from .config import get_settings

    settings = get_settings()
    return TaskGenerationConfig(
        daily_tasks_enabled=settings.daily_tasks_enabled,
        weekly_tasks_enabled=settings.weekly_tasks_enabled,
        monthly_tasks_enabled=settings.monthly_tasks_enabled,
        days_before_deadline=settings.days_before_deadline,
        priority_threshold=settings.priority_threshold,
    )


task_config_store = TaskConfigStore(_config_from_settings())

__all__ = [
    "ChapterNode",
    "ChapterStatus",
    "Priority",
    "SourceKind",
    "SubjectProgress",
    "SubjectTree",
    "TaskCandidate",
    "TaskConfigStore",
    "TaskGenerationConfig",
    "TaskRecord",
    "TaskScope",
    "TaskType",
    "TopicNode",
    "chapter_status",
    "task_config_store",
]
