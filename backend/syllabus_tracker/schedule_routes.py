"""CRUD and lifecycle endpoints for scheduled report/task jobs."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from .db.session import get_session_dependency
from .errors import NotFoundError, ScheduleValidationError
from .repositories.scheduled_jobs import scheduled_jobs
from .scheduler import job_scheduler
from .schedules import JobType, ReportFormat, ReportType, ScheduledJob, parse_schedule

router = APIRouter(prefix="/api/scheduled-jobs", tags=["scheduled-jobs"])
logger = logging.getLogger(__name__)


class ScheduledJobCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    job_type: JobType = "report"
    report_type: Optional[ReportType] = None
    format: Optional[ReportFormat] = None
    recipients: List[str] = Field(default_factory=list)
    filters: Dict[str, Any] = Field(default_factory=dict)
    task_scope: Optional[Literal["daily", "weekly", "monthly", "all"]] = None
    frequency: Literal["daily", "weekly", "monthly"]
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    time: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _fill_job_defaults(self) -> "ScheduledJobCreate":
        if self.job_type == "report":
            self.report_type = self.report_type or "custom"
            self.format = self.format or "json"
        else:
            self.task_scope = self.task_scope or "all"
        return self


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("", response_model=ScheduledJob, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: ScheduledJobCreate,
    session: Session = Depends(get_session_dependency),
) -> ScheduledJob:
    try:
        schedule = parse_schedule(
            {
                "frequency": payload.frequency,
                "day_of_week": payload.day_of_week,
                "day_of_month": payload.day_of_month,
                "time": payload.time,
            }
        )
    except ScheduleValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    job = ScheduledJob(
        name=payload.name,
        description=payload.description,
        job_type=payload.job_type,
        report_type=payload.report_type,
        format=payload.format,
        recipients=payload.recipients,
        filters=payload.filters,
        task_scope=payload.task_scope,
        schedule=schedule,
        is_active=payload.is_active,
        next_run=job_scheduler.first_run(schedule),
    )
    created = scheduled_jobs.create(session, job)
    session.commit()
    if created.is_active:
        job_scheduler.install(created)
    logger.info("Created scheduled job %s (%s), next run %s", created.id, created.name, created.next_run)
    return created


@router.get("", response_model=List[ScheduledJob])
def list_jobs(
    active_only: bool = False,
    session: Session = Depends(get_session_dependency),
) -> List[ScheduledJob]:
    return scheduled_jobs.list_jobs(session, active_only=active_only)


@router.post("/{job_id}/activate", response_model=ScheduledJob)
def activate_job(job_id: str, session: Session = Depends(get_session_dependency)) -> ScheduledJob:
    existing = scheduled_jobs.get(session, job_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Scheduled job '{job_id}' not found.")
    job = scheduled_jobs.set_active(
        session, job_id, True, next_run=job_scheduler.first_run(existing.schedule)
    )
    session.commit()
    job_scheduler.install(job)
    return job


@router.post("/{job_id}/deactivate", response_model=ScheduledJob)
def deactivate_job(job_id: str, session: Session = Depends(get_session_dependency)) -> ScheduledJob:
    try:
        job = scheduled_jobs.set_active(session, job_id, False)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    session.commit()
    job_scheduler.stop(job_id)
    return job


@router.post("/{job_id}/run", response_model=ScheduledJob)
def run_job(job_id: str) -> ScheduledJob:
    """Fire a job immediately; its regular timer is re-armed from the new next run."""
    job = job_scheduler.fire(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Scheduled job '{job_id}' not found.")
    if job.is_active:
        job_scheduler.install(job)
    return job


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job(job_id: str, session: Session = Depends(get_session_dependency)) -> Response:
    try:
        scheduled_jobs.delete(session, job_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    session.commit()
    job_scheduler.stop(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
