"""Admission guard for synthesized tasks plus the compensating cleanup passes.

Every candidate produced by the synthesizer goes through ``admit`` before it
is written. Two rules apply, in order:

1. Duplicate suppression: a pending task with the same class, subject, type
   and title created inside the dedup window blocks the candidate. The window
   is time-boxed, so recurring reminders reappear once it elapses.
2. Capacity ceiling: a class/subject/type pair already holding
   ``MAX_PENDING_TASKS`` pending tasks blocks the candidate regardless of title.

Both checks are read-then-write against a single record's peers and tolerate
benign races; ``cleanup_duplicates`` removes whatever slips through. A
candidate whose checks or write fail is logged and dropped, and the rest of
the generation pass carries on.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Literal, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .curriculum import TaskCandidate, TaskRecord
from .errors import InvariantViolation
from .repositories.syllabus import syllabus
from .repositories.tasks import TaskFilter, TaskRepository, task_store
from .telemetry import emit_event

logger = logging.getLogger(__name__)

DEDUP_WINDOW_DAYS = 7
MAX_PENDING_TASKS = 10
COMPLETED_RETENTION_DAYS = 30

AdmissionOutcome = Literal["created", "duplicate", "capacity", "dropped"]


@dataclass(frozen=True)
class Admission:
    outcome: AdmissionOutcome
    task: Optional[TaskRecord] = None

    @property
    def created(self) -> bool:
        return self.outcome == "created"


class TaskAdmissionGuard:
    def __init__(
        self,
        store: TaskRepository = task_store,
        *,
        dedup_window_days: int = DEDUP_WINDOW_DAYS,
        max_pending: int = MAX_PENDING_TASKS,
        retention_days: int = COMPLETED_RETENTION_DAYS,
    ) -> None:
        self._store = store
        self._dedup_window = timedelta(days=dedup_window_days)
        self._max_pending = max_pending
        self._retention = timedelta(days=retention_days)

    def admit(self, session: Session, candidate: TaskCandidate, *, now: Optional[datetime] = None) -> Admission:
        now = now or datetime.now(timezone.utc)
        try:
            duplicate, pending = self._evaluate(session, candidate, now)
        except InvariantViolation:
            logger.exception("Admission check failed; dropping task %r", candidate.title)
            return Admission("dropped")

        if duplicate:
            logger.debug("Skipped duplicate task: %s", candidate.title)
            return Admission("duplicate")
        if pending >= self._max_pending:
            logger.info(
                "Skipped task %r: %s pending %s tasks for subject %s",
                candidate.title,
                pending,
                candidate.task_type,
                candidate.subject_id,
            )
            return Admission("capacity")

        # A failed write only unwinds this candidate; earlier tasks in the pass survive.
        try:
            with session.begin_nested():
                task = self._store.create_task(session, candidate, created_at=now)
        except SQLAlchemyError:
            logger.exception("Could not create task %r; dropping it", candidate.title)
            return Admission("dropped")
        logger.debug("Created task: %s", task.title)
        return Admission("created", task)

    def _evaluate(self, session: Session, candidate: TaskCandidate, now: datetime) -> Tuple[bool, int]:
        try:
            duplicate = self._store.has_pending(
                session,
                TaskFilter(
                    class_id=candidate.class_id,
                    subject_id=candidate.subject_id,
                    task_type=candidate.task_type,
                    title=candidate.title,
                    created_since=now - self._dedup_window,
                ),
            )
            if duplicate:
                return True, 0
            peers = TaskFilter(
                class_id=candidate.class_id,
                subject_id=candidate.subject_id,
                task_type=candidate.task_type,
            )
            return False, self._store.count_pending(session, peers)
        except SQLAlchemyError as exc:
            raise InvariantViolation(f"Could not evaluate admission for {candidate.title!r}") from exc

    def cleanup_duplicates(self, session: Session) -> int:
        """Keep the earliest-created pending task per (class, subject, title, type)."""
        pending = sorted(
            self._store.find_pending_tasks(session, TaskFilter()),
            key=lambda task: (task.created_at, task.id),
        )
        groups: Dict[Tuple[str, str, str, str], List[TaskRecord]] = OrderedDict()
        for task in pending:
            key = (task.class_id, task.subject_id, task.title, task.task_type)
            groups.setdefault(key, []).append(task)

        surplus = [task.id for tasks in groups.values() for task in tasks[1:]]
        removed = self._store.delete_ids(session, surplus)
        emit_event("task_cleanup", kind="duplicates", removed=removed, groups=len(groups))
        return removed

    def cleanup_old(self, session: Session, *, now: Optional[datetime] = None) -> int:
        """Delete completed tasks untouched for longer than the retention period."""
        cutoff = (now or datetime.now(timezone.utc)) - self._retention
        removed = self._store.delete_tasks(session, TaskFilter(completed=True, updated_before=cutoff))
        emit_event("task_cleanup", kind="old", removed=removed, cutoff=cutoff)
        return removed

    def cleanup_orphans(self, session: Session) -> int:
        """Delete tasks whose source subject, chapter or topic no longer exists."""
        live = syllabus.node_ids(session)
        orphaned = [
            task.id
            for task in self._store.list_tasks(session, TaskFilter())
            if task.source_kind and task.source_id not in live.get(task.source_kind, set())
        ]
        removed = self._store.delete_ids(session, orphaned)
        if removed:
            logger.info("Cleaned up %s orphaned tasks", removed)
        emit_event("task_cleanup", kind="orphans", removed=removed)
        return removed

    def release_sources(self, session: Session, source_kind: str, source_ids: List[str]) -> int:
        """Drop pending tasks generated from nodes that were just deleted."""
        if not source_ids:
            return 0
        return self._store.delete_tasks(
            session,
            TaskFilter(source_kind=source_kind, source_ids=tuple(source_ids), completed=False),
        )


task_guard = TaskAdmissionGuard()

__all__ = [
    "Admission",
    "AdmissionOutcome",
    "COMPLETED_RETENTION_DAYS",
    "DEDUP_WINDOW_DAYS",
    "MAX_PENDING_TASKS",
    "TaskAdmissionGuard",
    "task_guard",
]
