"""Completion changes and progress read-back.

Toggling or deleting a syllabus node commits first, then hands the subject's
progress recompute to a background task. The recompute is eventually
consistent: a failure there is logged and never turns the already-successful
request into an error.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .curriculum import SubjectProgress, TopicNode
from .db.session import get_session_dependency
from .errors import NotFoundError
from .progress_aggregator import aggregator, recompute_progress_in_background
from .repositories.progress import progress_store
from .repositories.syllabus import syllabus
from .task_guard import task_guard

router = APIRouter(prefix="/api/syllabus", tags=["syllabus"])
logger = logging.getLogger(__name__)


class TopicCompletionRequest(BaseModel):
    completed: Optional[bool] = None


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/topics/{topic_id}/toggle", response_model=TopicNode)
def toggle_topic(
    topic_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[TopicCompletionRequest] = None,
    session: Session = Depends(get_session_dependency),
) -> TopicNode:
    try:
        topic, subject_id = syllabus.set_topic_completion(
            session, topic_id, payload.completed if payload else None
        )
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    session.commit()
    background_tasks.add_task(recompute_progress_in_background, subject_id)
    return topic


@router.delete("/topics/{topic_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_topic(
    topic_id: str,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session_dependency),
) -> Response:
    try:
        subject_id, _ = syllabus.delete_topic(session, topic_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    released = task_guard.release_sources(session, "topic", [topic_id])
    session.commit()
    logger.info("Deleted topic %s and %s pending tasks", topic_id, released)
    background_tasks.add_task(recompute_progress_in_background, subject_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/chapters/{chapter_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chapter(
    chapter_id: str,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session_dependency),
) -> Response:
    try:
        subject_id, topic_ids = syllabus.delete_chapter(session, chapter_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    released = task_guard.release_sources(session, "chapter", [chapter_id])
    released += task_guard.release_sources(session, "topic", topic_ids)
    session.commit()
    logger.info("Deleted chapter %s and %s pending tasks", chapter_id, released)
    background_tasks.add_task(recompute_progress_in_background, subject_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/subjects/{subject_id}/progress", response_model=SubjectProgress)
def get_progress(subject_id: str, session: Session = Depends(get_session_dependency)) -> SubjectProgress:
    progress = progress_store.get(session, subject_id) or aggregator.recompute(session, subject_id)
    if progress is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Subject '{subject_id}' not found.")
    return progress


@router.post("/subjects/{subject_id}/progress/recompute", response_model=SubjectProgress)
def recompute_progress(subject_id: str, session: Session = Depends(get_session_dependency)) -> SubjectProgress:
    progress = aggregator.recompute(session, subject_id)
    if progress is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Subject '{subject_id}' not found.")
    return progress
