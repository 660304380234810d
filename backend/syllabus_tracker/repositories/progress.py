"""Progress store: one derived roll-up row per subject."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..curriculum import SubjectProgress
from ..db.base import as_utc
from ..db.models import ProgressModel, SubjectModel

_COUNTED_FIELDS = (
    "total_chapters",
    "completed_chapters",
    "total_topics",
    "completed_topics",
    "percentage_complete",
    "is_on_track",
)


def _to_domain(model: ProgressModel) -> SubjectProgress:
    return SubjectProgress(
        subject_id=model.subject_id,
        total_chapters=model.total_chapters,
        completed_chapters=model.completed_chapters,
        total_topics=model.total_topics,
        completed_topics=model.completed_topics,
        percentage_complete=model.percentage_complete,
        is_on_track=model.is_on_track,
        last_updated=as_utc(model.last_updated),  # type: ignore[arg-type]
    )


class ProgressRepository:
    def get(self, session: Session, subject_id: str) -> Optional[SubjectProgress]:
        model = self._get_model(session, subject_id)
        return _to_domain(model) if model is not None else None

    def upsert_progress(self, session: Session, progress: SubjectProgress) -> Tuple[SubjectProgress, bool]:
        """Insert or update the subject's row.

        ``last_updated`` only moves when a counted field changes, so repeated
        recomputation over unchanged data leaves the stored row untouched.
        Returns the stored value and whether anything was written.
        """
        model = self._get_model(session, progress.subject_id)
        if model is None:
            model = ProgressModel(subject_id=progress.subject_id)
            session.add(model)
            changed = True
        else:
            changed = any(getattr(model, field) != getattr(progress, field) for field in _COUNTED_FIELDS)

        if changed:
            for field in _COUNTED_FIELDS:
                setattr(model, field, getattr(progress, field))
            model.last_updated = progress.last_updated
            session.flush()
        return _to_domain(model), changed

    def report_rows(self, session: Session, *, class_id: Optional[str] = None) -> List[Dict[str, Any]]:
        stmt = (
            select(SubjectModel, ProgressModel)
            .outerjoin(ProgressModel, ProgressModel.subject_id == SubjectModel.id)
            .order_by(SubjectModel.name)
        )
        if class_id:
            stmt = stmt.where(SubjectModel.class_id == class_id)
        rows: List[Dict[str, Any]] = []
        for subject, progress in session.execute(stmt).all():
            rows.append(
                {
                    "subject_id": subject.id,
                    "subject": subject.name,
                    "class_id": subject.class_id,
                    "deadline": subject.deadline.isoformat() if subject.deadline else None,
                    "completed_topics": progress.completed_topics if progress else 0,
                    "total_topics": progress.total_topics if progress else 0,
                    "percentage_complete": progress.percentage_complete if progress else 0,
                    "is_on_track": progress.is_on_track if progress else True,
                }
            )
        return rows

    def _get_model(self, session: Session, subject_id: str) -> Optional[ProgressModel]:
        stmt = select(ProgressModel).where(ProgressModel.subject_id == subject_id)
        return session.execute(stmt).scalar_one_or_none()


progress_store = ProgressRepository()

__all__ = ["ProgressRepository", "progress_store"]
