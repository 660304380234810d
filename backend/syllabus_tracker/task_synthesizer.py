"""Deadline-driven task synthesis.

Walks each subject's deadline tree and proposes dated work items:

* daily: overdue alerts plus "work on X" reminders spread over the days
  leading up to each deadline inside the configured horizon;
* weekly: a progress review and, when deadlines are near, a planning task;
* monthly: an assessment annotated with completion and a planning task.

Synthesis is pure; ``generate_tasks`` feeds the candidates through the
admission guard and reports what happened.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.orm import Session

from .curriculum import (
    Priority,
    SourceKind,
    SubjectTree,
    TaskCandidate,
    TaskGenerationConfig,
    TaskScope,
    TaskType,
)
from .progress_aggregator import completion_percentage
from .repositories.syllabus import syllabus
from .schedules import local_today
from .task_guard import TaskAdmissionGuard, task_guard
from .telemetry import emit_event

logger = logging.getLogger(__name__)

HIGH_PRIORITY_DAYS = 1
WORK_SPREAD_DIVISOR = 3
WEEKLY_HORIZON_DAYS = 7
MONTHLY_HORIZON_DAYS = 30
DEFAULT_WINDOW_DAYS = 30

_KIND_LABELS = {"subject": "Subject", "chapter": "Chapter", "topic": "Topic"}


@dataclass(frozen=True)
class DeadlineNode:
    kind: SourceKind
    id: str
    label: str
    deadline: date
    completed: bool


@dataclass(frozen=True)
class GenerationWindow:
    start: date
    end: date

    @classmethod
    def default(cls, today: date) -> "GenerationWindow":
        return cls(start=today, end=today + timedelta(days=DEFAULT_WINDOW_DAYS))

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("Generation window end must not precede its start.")

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end


@dataclass
class SynthesisResult:
    candidates: List[TaskCandidate] = field(default_factory=list)
    overdue: int = 0


def days_until(deadline: date, today: date) -> int:
    return (deadline - today).days


def priority_for(days: int, config: TaskGenerationConfig) -> Priority:
    if days <= HIGH_PRIORITY_DAYS:
        return "high"
    if days <= config.priority_threshold:
        return "medium"
    return "low"


def work_days_for(days: int) -> int:
    """Number of consecutive days, starting today, that carry a reminder."""
    return max(1, math.ceil(days / WORK_SPREAD_DIVISOR))


def deadline_nodes(tree: SubjectTree) -> Iterator[DeadlineNode]:
    """Subject, chapter and topic deadlines in tree order."""
    if tree.deadline is not None:
        yield DeadlineNode("subject", tree.id, tree.name, tree.deadline, tree.is_completed)
    for chapter in tree.chapters:
        if chapter.deadline is not None:
            yield DeadlineNode(
                "chapter",
                chapter.id,
                f"{chapter.title} - {tree.name}",
                chapter.deadline,
                chapter.derived_status == "completed",
            )
        for topic in chapter.topics:
            yield DeadlineNode(
                "topic",
                topic.id,
                f"{topic.title} - {chapter.title}",
                topic.deadline,
                topic.completed,
            )


def _deadlines_between(tree: SubjectTree, start: date, end: date) -> int:
    return sum(1 for node in deadline_nodes(tree) if start <= node.deadline <= end)


class TaskSynthesizer:
    def daily(
        self,
        tree: SubjectTree,
        config: TaskGenerationConfig,
        today: date,
        window: GenerationWindow,
    ) -> SynthesisResult:
        result = SynthesisResult()
        for node in deadline_nodes(tree):
            if node.completed:
                continue
            days = days_until(node.deadline, today)
            kind = _KIND_LABELS[node.kind]
            if days < 0:
                result.overdue += 1
                result.candidates.append(
                    self._candidate(
                        tree,
                        node,
                        today,
                        title=f"URGENT: Overdue {kind} - {node.label}",
                        priority="high",
                        task_type="daily",
                        notes=f"Overdue since: {node.deadline.isoformat()}",
                    )
                )
                continue
            if days > config.days_before_deadline:
                continue

            priority = priority_for(days, config)
            for offset in range(work_days_for(days)):
                work_date = today + timedelta(days=offset)
                if work_date not in window:
                    continue
                result.candidates.append(
                    self._candidate(
                        tree,
                        node,
                        work_date,
                        title=f"Complete {kind}: {node.label} [{work_date.isoformat()}]",
                        priority=priority,
                        task_type="daily",
                        notes=f"{kind} deadline: {node.deadline.isoformat()} ({days} days left)",
                    )
                )
        return result

    def weekly(self, tree: SubjectTree, today: date) -> SynthesisResult:
        result = SynthesisResult()
        total, completed = tree.topic_counts()
        remaining = total - completed
        if remaining > 0:
            result.candidates.append(
                self._subject_candidate(
                    tree,
                    today,
                    title=f"Weekly Review: {tree.name} Progress",
                    task_type="weekly",
                    notes=f"{remaining} topics remaining to complete",
                )
            )
        upcoming = _deadlines_between(tree, today, today + timedelta(days=WEEKLY_HORIZON_DAYS))
        if upcoming:
            result.candidates.append(
                self._subject_candidate(
                    tree,
                    today,
                    title=f"Weekly Planning: {tree.name}",
                    task_type="weekly",
                    notes=f"{upcoming} deadlines in the next week",
                )
            )
        return result

    def monthly(self, tree: SubjectTree, today: date) -> SynthesisResult:
        result = SynthesisResult()
        total, completed = tree.topic_counts()
        result.candidates.append(
            self._subject_candidate(
                tree,
                today,
                title=f"Monthly Assessment: {tree.name}",
                task_type="monthly",
                notes=f"Current progress: {completion_percentage(completed, total)}%",
            )
        )
        upcoming = _deadlines_between(tree, today, today + timedelta(days=MONTHLY_HORIZON_DAYS))
        if upcoming:
            result.candidates.append(
                self._subject_candidate(
                    tree,
                    today,
                    title=f"Monthly Planning: {tree.name}",
                    task_type="monthly",
                    notes=f"{upcoming} deadlines in the next month",
                )
            )
        return result

    def synthesize(
        self,
        trees: List[SubjectTree],
        scope: TaskScope,
        config: TaskGenerationConfig,
        today: date,
        window: Optional[GenerationWindow] = None,
    ) -> SynthesisResult:
        window = window or GenerationWindow.default(today)
        combined = SynthesisResult()
        for task_type in enabled_types(scope, config):
            for tree in trees:
                if task_type == "daily":
                    part = self.daily(tree, config, today, window)
                elif task_type == "weekly":
                    part = self.weekly(tree, today)
                else:
                    part = self.monthly(tree, today)
                combined.candidates.extend(part.candidates)
                combined.overdue += part.overdue
        return combined

    def _candidate(
        self,
        tree: SubjectTree,
        node: DeadlineNode,
        task_date: date,
        *,
        title: str,
        priority: Priority,
        task_type: TaskType,
        notes: str,
    ) -> TaskCandidate:
        return TaskCandidate(
            class_id=tree.class_id,
            subject_id=tree.id,
            task_date=task_date,
            title=title,
            priority=priority,
            task_type=task_type,
            notes=notes,
            source_kind=node.kind,
            source_id=node.id,
        )

    def _subject_candidate(
        self,
        tree: SubjectTree,
        today: date,
        *,
        title: str,
        task_type: TaskType,
        notes: str,
    ) -> TaskCandidate:
        return TaskCandidate(
            class_id=tree.class_id,
            subject_id=tree.id,
            task_date=today,
            title=title,
            priority="medium",
            task_type=task_type,
            notes=notes,
            source_kind="subject",
            source_id=tree.id,
        )


def enabled_types(scope: TaskScope, config: TaskGenerationConfig) -> Tuple[TaskType, ...]:
    requested: Tuple[TaskType, ...] = ("daily", "weekly", "monthly") if scope == "all" else (scope,)
    flags = {
        "daily": config.daily_tasks_enabled,
        "weekly": config.weekly_tasks_enabled,
        "monthly": config.monthly_tasks_enabled,
    }
    return tuple(task_type for task_type in requested if flags[task_type])


class GenerationSummary(BaseModel):
    scope: TaskScope
    window_start: date
    window_end: date
    created: int = 0
    skipped_duplicate: int = 0
    skipped_capacity: int = 0
    dropped: int = 0
    overdue: int = 0
    orphans_removed: int = 0


synthesizer = TaskSynthesizer()


def generate_tasks(
    session: Session,
    scope: TaskScope,
    config: TaskGenerationConfig,
    *,
    window: Optional[GenerationWindow] = None,
    subject_id: Optional[str] = None,
    class_id: Optional[str] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    guard: TaskAdmissionGuard = task_guard,
) -> GenerationSummary:
    """Synthesize tasks for the requested scope and persist those the guard admits.

    ``summary.created`` is the number of tasks written.
    """
    now = now or datetime.now(timezone.utc)
    today = today or local_today(now)
    window = window or GenerationWindow.default(today)
    summary = GenerationSummary(scope=scope, window_start=window.start, window_end=window.end)

    types = enabled_types(scope, config)
    if not types:
        logger.info("Task generation for scope %s is disabled", scope)
        return summary

    if "daily" in types:
        summary.orphans_removed = guard.cleanup_orphans(session)

    if subject_id is not None:
        tree = syllabus.get_subject_tree(session, subject_id)
        trees = [tree] if tree is not None else []
    else:
        trees = syllabus.list_subject_trees(session, class_id=class_id)

    result = synthesizer.synthesize(trees, scope, config, today, window)
    summary.overdue = result.overdue
    for candidate in result.candidates:
        admission = guard.admit(session, candidate, now=now)
        if admission.outcome == "created":
            summary.created += 1
        elif admission.outcome == "duplicate":
            summary.skipped_duplicate += 1
        elif admission.outcome == "capacity":
            summary.skipped_capacity += 1
        else:
            summary.dropped += 1

    logger.info(
        "Generated %s %s tasks across %s subjects (%s duplicates, %s over capacity)",
        summary.created,
        scope,
        len(trees),
        summary.skipped_duplicate,
        summary.skipped_capacity,
    )
    emit_event("task_generation", **summary.model_dump(), subjects=len(trees))
    return summary


__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "DeadlineNode",
    "GenerationSummary",
    "GenerationWindow",
    "SynthesisResult",
    "TaskSynthesizer",
    "days_until",
    "deadline_nodes",
    "enabled_types",
    "generate_tasks",
    "priority_for",
    "synthesizer",
    "work_days_for",
]
