"""Shared fixtures: a throwaway SQLite database and syllabus seeding helpers."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

_DB_DIR = Path(tempfile.mkdtemp(prefix="syllabus-tests-"))
os.environ["SYLLABUS_DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'tests.db'}"
os.environ["SYLLABUS_SCHEDULER_ENABLED"] = "false"

from syllabus_tracker.curriculum import task_config_store  # noqa: E402
from syllabus_tracker.db.models import ChapterModel, SubjectModel, TopicModel  # noqa: E402
from syllabus_tracker.db.session import reset_schema, session_scope  # noqa: E402
from syllabus_tracker.telemetry import clear_listeners  # noqa: E402

TopicSpec = Tuple[str, date, bool]
ChapterSpec = Tuple[str, Optional[date], Sequence[TopicSpec]]


@dataclass
class SeededSubject:
    subject_id: str
    class_id: str
    chapter_ids: List[str] = field(default_factory=list)
    topic_ids: List[str] = field(default_factory=list)


def seed_subject(
    name: str = "Physics",
    *,
    class_id: str = "class-1",
    deadline: Optional[date] = None,
    chapters: Sequence[ChapterSpec] = (),
) -> SeededSubject:
    """Insert a subject tree. Each chapter is ``(title, deadline, [(topic, deadline, completed)])``."""
    with session_scope() as session:
        subject = SubjectModel(class_id=class_id, name=name, deadline=deadline)
        session.add(subject)
        session.flush()
        seeded = SeededSubject(subject_id=subject.id, class_id=class_id)
        for number, (title, chapter_deadline, topics) in enumerate(chapters, start=1):
            chapter = ChapterModel(
                subject_id=subject.id,
                title=title,
                number=number,
                deadline=chapter_deadline,
            )
            session.add(chapter)
            session.flush()
            seeded.chapter_ids.append(chapter.id)
            for topic_title, topic_deadline, completed in topics:
                topic = TopicModel(
                    chapter_id=chapter.id,
                    title=topic_title,
                    deadline=topic_deadline,
                    completed=completed,
                )
                session.add(topic)
                session.flush()
                seeded.topic_ids.append(topic.id)
        return seeded


@pytest.fixture(autouse=True)
def fresh_database():
    reset_schema()
    task_config_store.reset()
    clear_listeners()
    yield
    clear_listeners()


@pytest.fixture
def seed():
    return seed_subject
