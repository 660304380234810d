"""Subject-level progress roll-up, recomputed whenever topic completion changes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from .curriculum import SubjectProgress, SubjectTree
from .db.session import session_scope
from .repositories.progress import progress_store
from .repositories.syllabus import syllabus
from .schedules import local_today
from .telemetry import emit_event

logger = logging.getLogger(__name__)

# Subjects at or past this completion count as on track even after their deadline.
# Product policy; there is no configuration surface for it yet.
ON_TRACK_FORGIVENESS_PERCENT = 80


def completion_percentage(completed: int, total: int) -> int:
    """Integer percentage rounded half-up; 0 when there is nothing to complete."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def compute_progress(tree: SubjectTree, *, now: datetime, tz: Optional[ZoneInfo] = None) -> SubjectProgress:
    """Snapshot a subject tree. The deadline is compared against the local date in ``tz``."""
    total_topics, completed_topics = tree.topic_counts()
    completed_chapters = sum(1 for chapter in tree.chapters if chapter.derived_status == "completed")
    percentage = completion_percentage(completed_topics, total_topics)
    today = local_today(now, tz)
    on_track = (
        tree.deadline is None
        or today <= tree.deadline
        or percentage >= ON_TRACK_FORGIVENESS_PERCENT
    )
    return SubjectProgress(
        subject_id=tree.id,
        total_chapters=len(tree.chapters),
        completed_chapters=completed_chapters,
        total_topics=total_topics,
        completed_topics=completed_topics,
        percentage_complete=percentage,
        is_on_track=on_track,
        last_updated=now,
    )


class ProgressAggregator:
    def recompute(
        self,
        session: Session,
        subject_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[SubjectProgress]:
        """Recompute and upsert the subject's progress.

        A subject that no longer exists is a no-op and returns None.
        """
        tree = syllabus.get_subject_tree(session, subject_id)
        if tree is None:
            logger.info("Skipping progress recompute for missing subject %s", subject_id)
            return None
        syllabus.reconcile_chapter_statuses(session, subject_id)

        progress = compute_progress(tree, now=now or datetime.now(timezone.utc))
        stored, changed = progress_store.upsert_progress(session, progress)
        if changed:
            emit_event(
                "progress_recomputed",
                subject_id=subject_id,
                percentage_complete=stored.percentage_complete,
                completed_topics=stored.completed_topics,
                total_topics=stored.total_topics,
                is_on_track=stored.is_on_track,
            )
        return stored


aggregator = ProgressAggregator()


def recompute_progress_in_background(subject_id: str) -> None:
    """Background-task entry point used after a completion change has been committed.

    Runs in its own session after the triggering response is sent. Failures are
    logged and swallowed; the next recompute for the subject repairs the row.
    """
    try:
        with session_scope() as session:
            aggregator.recompute(session, subject_id)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to recompute progress for subject=%s", subject_id)


__all__ = [
    "ON_TRACK_FORGIVENESS_PERCENT",
    "ProgressAggregator",
    "aggregator",
    "completion_percentage",
    "compute_progress",
    "recompute_progress_in_background",
]
