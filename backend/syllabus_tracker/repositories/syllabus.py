"""Deadline-tree reader and the few syllabus mutations the core reacts to."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..curriculum import ChapterNode, SubjectTree, TopicNode, chapter_status
from ..db.base import as_utc
from ..db.models import ChapterModel, SubjectModel, TopicModel
from ..errors import NotFoundError


def _topic_node(model: TopicModel) -> TopicNode:
    return TopicNode(
        id=model.id,
        title=model.title,
        deadline=model.deadline,
        completed=model.completed,
        completed_at=as_utc(model.completed_at),
    )


def _chapter_node(model: ChapterModel) -> ChapterNode:
    return ChapterNode(
        id=model.id,
        title=model.title,
        number=model.number,
        deadline=model.deadline,
        status=model.status,  # type: ignore[arg-type]
        topics=[_topic_node(topic) for topic in model.topics],
    )


def _subject_tree(model: SubjectModel) -> SubjectTree:
    chapters = sorted(model.chapters, key=lambda chapter: chapter.number)
    return SubjectTree(
        id=model.id,
        class_id=model.class_id,
        name=model.name,
        deadline=model.deadline,
        chapters=[_chapter_node(chapter) for chapter in chapters],
    )


class SyllabusRepository:
    """Reads Subject -> Chapter -> Topic trees and applies completion changes."""

    def _tree_query(self):  # type: ignore[no-untyped-def]
        return select(SubjectModel).options(
            selectinload(SubjectModel.chapters).selectinload(ChapterModel.topics)
        )

    def get_subject_tree(self, session: Session, subject_id: str) -> Optional[SubjectTree]:
        stmt = self._tree_query().where(SubjectModel.id == subject_id)
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            return None
        return _subject_tree(model)

    def list_subject_trees(self, session: Session, *, class_id: Optional[str] = None) -> List[SubjectTree]:
        stmt = self._tree_query().order_by(SubjectModel.name)
        if class_id:
            stmt = stmt.where(SubjectModel.class_id == class_id)
        models = session.execute(stmt).scalars().all()
        return [_subject_tree(model) for model in models]

    def set_topic_completion(
        self,
        session: Session,
        topic_id: str,
        completed: Optional[bool] = None,
    ) -> Tuple[TopicNode, str]:
        """Set (or toggle, when ``completed`` is None) a topic's completion flag.

        The owning chapter's status is refreshed in the same unit of work.
        Returns the updated topic and the id of its subject.
        """
        topic = session.get(TopicModel, topic_id)
        if topic is None:
            raise NotFoundError(f"Topic '{topic_id}' not found.")
        target = (not topic.completed) if completed is None else completed
        topic.completed = target
        topic.completed_at = datetime.now(timezone.utc) if target else None
        session.flush()

        chapter = topic.chapter
        self.refresh_chapter_status(session, chapter)
        return _topic_node(topic), chapter.subject_id

    def refresh_chapter_status(self, session: Session, chapter: ChapterModel) -> str:
        status = chapter_status([_topic_node(topic) for topic in chapter.topics])
        if chapter.status != status:
            chapter.status = status
            session.flush()
        return status

    def reconcile_chapter_statuses(self, session: Session, subject_id: str) -> int:
        """Rewrite any stored chapter status that disagrees with its topics."""
        stmt = (
            select(ChapterModel)
            .where(ChapterModel.subject_id == subject_id)
            .options(selectinload(ChapterModel.topics))
        )
        fixed = 0
        for chapter in session.execute(stmt).scalars().all():
            before = chapter.status
            if self.refresh_chapter_status(session, chapter) != before:
                fixed += 1
        return fixed

    def delete_topic(self, session: Session, topic_id: str) -> Tuple[str, str]:
        """Delete a topic; returns ``(subject_id, chapter_id)`` of its former owners."""
        topic = session.get(TopicModel, topic_id)
        if topic is None:
            raise NotFoundError(f"Topic '{topic_id}' not found.")
        chapter = topic.chapter
        chapter.topics.remove(topic)
        session.flush()
        self.refresh_chapter_status(session, chapter)
        return chapter.subject_id, chapter.id

    def delete_chapter(self, session: Session, chapter_id: str) -> Tuple[str, List[str]]:
        """Delete a chapter with its topics; returns ``(subject_id, removed_topic_ids)``."""
        chapter = session.get(ChapterModel, chapter_id)
        if chapter is None:
            raise NotFoundError(f"Chapter '{chapter_id}' not found.")
        subject_id = chapter.subject_id
        topic_ids = [topic.id for topic in chapter.topics]
        session.delete(chapter)
        session.flush()
        return subject_id, topic_ids

    def node_ids(self, session: Session) -> Dict[str, Set[str]]:
        """Ids of every live node, keyed by source kind."""
        return {
            "subject": set(session.execute(select(SubjectModel.id)).scalars().all()),
            "chapter": set(session.execute(select(ChapterModel.id)).scalars().all()),
            "topic": set(session.execute(select(TopicModel.id)).scalars().all()),
        }


syllabus = SyllabusRepository()

__all__ = ["SyllabusRepository", "syllabus"]
