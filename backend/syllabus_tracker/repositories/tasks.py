"""Task store backed by the ``tasks`` table."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..curriculum import TaskCandidate, TaskRecord
from ..db.base import as_utc, utcnow
from ..db.models import TaskModel
from ..errors import NotFoundError


@dataclass(frozen=True)
class TaskFilter:
    class_id: Optional[str] = None
    subject_id: Optional[str] = None
    task_type: Optional[str] = None
    priority: Optional[str] = None
    title: Optional[str] = None
    completed: Optional[bool] = None
    task_date: Optional[date] = None
    before_date: Optional[date] = None
    created_since: Optional[datetime] = None
    updated_before: Optional[datetime] = None
    source_kind: Optional[str] = None
    source_ids: Optional[tuple[str, ...]] = None
    ids: Optional[tuple[str, ...]] = None

    def pending(self) -> "TaskFilter":
        return replace(self, completed=False)

    def clauses(self) -> List[Any]:
        clauses: List[Any] = []
        if self.class_id is not None:
            clauses.append(TaskModel.class_id == self.class_id)
        if self.subject_id is not None:
            clauses.append(TaskModel.subject_id == self.subject_id)
        if self.task_type is not None:
            clauses.append(TaskModel.task_type == self.task_type)
        if self.priority is not None:
            clauses.append(TaskModel.priority == self.priority)
        if self.title is not None:
            clauses.append(TaskModel.title == self.title)
        if self.completed is not None:
            clauses.append(TaskModel.completed.is_(self.completed))
        if self.task_date is not None:
            clauses.append(TaskModel.task_date == self.task_date)
        if self.before_date is not None:
            clauses.append(TaskModel.task_date < self.before_date)
        if self.created_since is not None:
            clauses.append(TaskModel.created_at >= self.created_since)
        if self.updated_before is not None:
            clauses.append(TaskModel.updated_at < self.updated_before)
        if self.source_kind is not None:
            clauses.append(TaskModel.source_kind == self.source_kind)
        if self.source_ids is not None:
            clauses.append(TaskModel.source_id.in_(self.source_ids))
        if self.ids is not None:
            clauses.append(TaskModel.id.in_(self.ids))
        return clauses


def _to_record(model: TaskModel) -> TaskRecord:
    return TaskRecord(
        id=model.id,
        class_id=model.class_id,
        subject_id=model.subject_id,
        task_date=model.task_date,
        title=model.title,
        priority=model.priority,  # type: ignore[arg-type]
        task_type=model.task_type,  # type: ignore[arg-type]
        completed=model.completed,
        notes=model.notes,
        source_kind=model.source_kind,  # type: ignore[arg-type]
        source_id=model.source_id,
        created_at=as_utc(model.created_at),  # type: ignore[arg-type]
        updated_at=as_utc(model.updated_at),  # type: ignore[arg-type]
    )


class TaskRepository:
    def list_tasks(self, session: Session, task_filter: TaskFilter) -> List[TaskRecord]:
        stmt = (
            select(TaskModel)
            .where(*task_filter.clauses())
            .order_by(TaskModel.task_date.desc(), TaskModel.created_at.asc(), TaskModel.id.asc())
        )
        return [_to_record(model) for model in session.execute(stmt).scalars().all()]

    def find_pending_tasks(self, session: Session, task_filter: TaskFilter) -> List[TaskRecord]:
        return self.list_tasks(session, task_filter.pending())

    def count_pending(self, session: Session, task_filter: TaskFilter) -> int:
        stmt = select(func.count()).select_from(TaskModel).where(*task_filter.pending().clauses())
        return int(session.execute(stmt).scalar_one())

    def has_pending(self, session: Session, task_filter: TaskFilter) -> bool:
        stmt = select(TaskModel.id).where(*task_filter.pending().clauses()).limit(1)
        return session.execute(stmt).first() is not None

    def create_task(
        self,
        session: Session,
        candidate: TaskCandidate,
        *,
        created_at: Optional[datetime] = None,
    ) -> TaskRecord:
        stamp = created_at or utcnow()
        model = TaskModel(
            class_id=candidate.class_id,
            subject_id=candidate.subject_id,
            source_kind=candidate.source_kind,
            source_id=candidate.source_id,
            task_date=candidate.task_date,
            title=candidate.title,
            priority=candidate.priority,
            task_type=candidate.task_type,
            completed=False,
            notes=candidate.notes,
            created_at=stamp,
            updated_at=stamp,
        )
        session.add(model)
        session.flush()
        return _to_record(model)

    def delete_tasks(self, session: Session, task_filter: TaskFilter) -> int:
        result = session.execute(
            delete(TaskModel).where(*task_filter.clauses()).execution_options(synchronize_session=False)
        )
        session.expire_all()
        return int(result.rowcount or 0)

    def delete_ids(self, session: Session, ids: Iterable[str]) -> int:
        targets = tuple(ids)
        if not targets:
            return 0
        return self.delete_tasks(session, TaskFilter(ids=targets))

    def toggle_completed(self, session: Session, task_id: str) -> TaskRecord:
        model = self._require(session, task_id)
        model.completed = not model.completed
        model.updated_at = utcnow()
        session.flush()
        return _to_record(model)

    def set_notes(self, session: Session, task_id: str, notes: Optional[str]) -> TaskRecord:
        model = self._require(session, task_id)
        model.notes = notes
        model.updated_at = utcnow()
        session.flush()
        return _to_record(model)

    def stats(self, session: Session, today: date) -> Dict[str, Any]:
        per_type = dict(
            session.execute(
                select(TaskModel.task_type, func.count())
                .where(TaskModel.task_date == today)
                .group_by(TaskModel.task_type)
            ).all()
        )
        overdue = self.count_pending(session, TaskFilter(priority="high", before_date=today))
        by_priority = dict(
            session.execute(
                select(TaskModel.priority, func.count())
                .where(TaskModel.completed.is_(False))
                .group_by(TaskModel.priority)
            ).all()
        )
        return {
            "daily": int(per_type.get("daily", 0)),
            "weekly": int(per_type.get("weekly", 0)),
            "monthly": int(per_type.get("monthly", 0)),
            "overdue": overdue,
            "by_priority": {key: int(value) for key, value in by_priority.items()},
        }

    def _require(self, session: Session, task_id: str) -> TaskModel:
        model = session.get(TaskModel, task_id)
        if model is None:
            raise NotFoundError(f"Task '{task_id}' not found.")
        return model


task_store = TaskRepository()

__all__ = ["TaskFilter", "TaskRepository", "task_store"]
