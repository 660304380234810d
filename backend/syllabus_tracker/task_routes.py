"""Task generation, listing and maintenance endpoints."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .curriculum import Priority, TaskGenerationConfig, TaskRecord, TaskScope, TaskType, task_config_store
from .db.session import get_session_dependency
from .errors import NotFoundError
from .repositories.tasks import TaskFilter, task_store
from .schedules import local_today
from .task_guard import task_guard
from .task_synthesizer import DEFAULT_WINDOW_DAYS, GenerationSummary, GenerationWindow, generate_tasks

router = APIRouter(prefix="/api/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


class GenerateTasksRequest(BaseModel):
    scope: TaskScope = "all"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    subject_id: Optional[str] = None
    class_id: Optional[str] = None


class TaskConfigUpdate(BaseModel):
    daily_tasks_enabled: Optional[bool] = None
    weekly_tasks_enabled: Optional[bool] = None
    monthly_tasks_enabled: Optional[bool] = None
    days_before_deadline: Optional[int] = Field(default=None, ge=0)
    priority_threshold: Optional[int] = Field(default=None, ge=1)


class TaskNotesUpdate(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


class CleanupResult(BaseModel):
    kind: str
    removed: int


def _today() -> date:
    return local_today()


@router.post("/generate", response_model=GenerationSummary)
def generate(
    payload: GenerateTasksRequest,
    session: Session = Depends(get_session_dependency),
) -> GenerationSummary:
    today = _today()
    start = payload.start_date or today
    end = payload.end_date or start + timedelta(days=DEFAULT_WINDOW_DAYS)
    try:
        window = GenerationWindow(start=start, end=end)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return generate_tasks(
        session,
        payload.scope,
        task_config_store.get(),
        window=window,
        subject_id=payload.subject_id,
        class_id=payload.class_id,
        today=today,
    )


@router.get("", response_model=List[TaskRecord])
def list_tasks(
    task_type: Optional[TaskType] = Query(default=None, alias="type"),
    class_id: Optional[str] = Query(default=None),
    subject_id: Optional[str] = Query(default=None),
    priority: Optional[Priority] = Query(default=None),
    on: Optional[date] = Query(default=None, alias="date"),
    completed: Optional[bool] = Query(default=None),
    session: Session = Depends(get_session_dependency),
) -> List[TaskRecord]:
    task_filter = TaskFilter(
        class_id=class_id,
        subject_id=subject_id,
        task_type=task_type,
        priority=priority,
        completed=completed,
        task_date=on,
    )
    return task_store.list_tasks(session, task_filter)


@router.get("/stats")
def task_stats(session: Session = Depends(get_session_dependency)) -> Dict[str, Any]:
    return task_store.stats(session, _today())


@router.get("/config", response_model=TaskGenerationConfig)
def get_config() -> TaskGenerationConfig:
    return task_config_store.get()


@router.put("/config", response_model=TaskGenerationConfig)
def update_config(payload: TaskConfigUpdate) -> TaskGenerationConfig:
    updated = task_config_store.update(**payload.model_dump())
    logger.info("Task generation config updated: %s", updated.model_dump())
    return updated


@router.post("/cleanup/old", response_model=CleanupResult)
def cleanup_old(session: Session = Depends(get_session_dependency)) -> CleanupResult:
    return CleanupResult(kind="old", removed=task_guard.cleanup_old(session))


@router.post("/cleanup/duplicates", response_model=CleanupResult)
def cleanup_duplicates(session: Session = Depends(get_session_dependency)) -> CleanupResult:
    return CleanupResult(kind="duplicates", removed=task_guard.cleanup_duplicates(session))


@router.post("/cleanup/orphans", response_model=CleanupResult)
def cleanup_orphans(session: Session = Depends(get_session_dependency)) -> CleanupResult:
    return CleanupResult(kind="orphans", removed=task_guard.cleanup_orphans(session))


@router.patch("/{task_id}/toggle", response_model=TaskRecord)
def toggle_task(task_id: str, session: Session = Depends(get_session_dependency)) -> TaskRecord:
    try:
        return task_store.toggle_completed(session, task_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.patch("/{task_id}/notes", response_model=TaskRecord)
def update_task_notes(
    task_id: str,
    payload: TaskNotesUpdate,
    session: Session = Depends(get_session_dependency),
) -> TaskRecord:
    try:
        return task_store.set_notes(session, task_id, payload.notes)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
