"""Persistence for scheduled report and task-generation jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.base import as_utc
from ..db.models import ScheduledJobModel
from ..errors import NotFoundError
from ..schedules import ScheduledJob, parse_schedule


def _schedule_payload(model: ScheduledJobModel) -> Dict[str, Any]:
    return {
        "frequency": model.frequency,
        "day_of_week": model.day_of_week,
        "day_of_month": model.day_of_month,
        "time": model.time,
    }


def _to_domain(model: ScheduledJobModel) -> ScheduledJob:
    return ScheduledJob(
        id=model.id,
        name=model.name,
        description=model.description,
        job_type=model.job_type,  # type: ignore[arg-type]
        report_type=model.report_type,  # type: ignore[arg-type]
        format=model.format,  # type: ignore[arg-type]
        recipients=list(model.recipients or []),
        filters=dict(model.filters or {}),
        task_scope=model.task_scope,  # type: ignore[arg-type]
        schedule=parse_schedule(_schedule_payload(model)),
        is_active=model.is_active,
        last_run=as_utc(model.last_run),
        next_run=as_utc(model.next_run),  # type: ignore[arg-type]
    )


class ScheduledJobRepository:
    def get(self, session: Session, job_id: str) -> Optional[ScheduledJob]:
        model = session.get(ScheduledJobModel, job_id)
        return _to_domain(model) if model is not None else None

    def list_jobs(self, session: Session, *, active_only: bool = False) -> List[ScheduledJob]:
        stmt = select(ScheduledJobModel).order_by(ScheduledJobModel.created_at.asc())
        if active_only:
            stmt = stmt.where(ScheduledJobModel.is_active.is_(True))
        return [_to_domain(model) for model in session.execute(stmt).scalars().all()]

    def create(self, session: Session, job: ScheduledJob) -> ScheduledJob:
        schedule = job.schedule
        model = ScheduledJobModel(
            name=job.name,
            description=job.description,
            job_type=job.job_type,
            report_type=job.report_type,
            format=job.format,
            recipients=list(job.recipients),
            filters=dict(job.filters),
            task_scope=job.task_scope,
            frequency=schedule.frequency,
            day_of_week=getattr(schedule, "day_of_week", None),
            day_of_month=getattr(schedule, "day_of_month", None),
            time=schedule.time,
            is_active=job.is_active,
            last_run=job.last_run,
            next_run=job.next_run,
        )
        session.add(model)
        session.flush()
        return _to_domain(model)

    def set_active(self, session: Session, job_id: str, active: bool, *, next_run: Optional[datetime] = None) -> ScheduledJob:
        model = self._require(session, job_id)
        model.is_active = active
        if next_run is not None:
            model.next_run = next_run
        session.flush()
        return _to_domain(model)

    def record_run(self, session: Session, job_id: str, *, last_run: datetime, next_run: datetime) -> Optional[ScheduledJob]:
        model = session.get(ScheduledJobModel, job_id)
        if model is None:
            return None
        model.last_run = last_run
        model.next_run = next_run
        session.flush()
        return _to_domain(model)

    def delete(self, session: Session, job_id: str) -> None:
        session.delete(self._require(session, job_id))
        session.flush()

    def _require(self, session: Session, job_id: str) -> ScheduledJobModel:
        model = session.get(ScheduledJobModel, job_id)
        if model is None:
            raise NotFoundError(f"Scheduled job '{job_id}' not found.")
        return model


scheduled_jobs = ScheduledJobRepository()

__all__ = ["ScheduledJobRepository", "scheduled_jobs"]
