from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy import select

from syllabus_tracker.db.models import ChapterModel, TaskModel
from syllabus_tracker.db.session import session_scope
from syllabus_tracker.main import app

client = TestClient(app)
TODAY = datetime.now(timezone.utc).date()


def _two_topic_subject(seed):
    return seed(
        deadline=TODAY + timedelta(days=30),
        chapters=[
            ("Mechanics", None, [("Kinematics", TODAY + timedelta(days=2), False), ("Dynamics", TODAY + timedelta(days=5), False)]),
            ("Optics", None, [("Reflection", TODAY + timedelta(days=20), True)]),
        ],
    )


def test_toggle_topic_recomputes_progress(seed) -> None:
    seeded = _two_topic_subject(seed)
    topic_id = seeded.topic_ids[0]

    response = client.post(f"/api/syllabus/topics/{topic_id}/toggle")

    assert response.status_code == 200
    assert response.json()["completed"] is True
    progress = client.get(f"/api/syllabus/subjects/{seeded.subject_id}/progress").json()
    assert progress["completed_topics"] == 2
    assert progress["percentage_complete"] == 67
    assert progress["completed_chapters"] == 1

    with session_scope(commit=False) as session:
        status = session.get(ChapterModel, seeded.chapter_ids[0]).status
    assert status == "in_progress"


def test_explicit_completion_flag(seed) -> None:
    seeded = _two_topic_subject(seed)
    completed_topic = seeded.topic_ids[2]

    response = client.post(f"/api/syllabus/topics/{completed_topic}/toggle", json={"completed": True})

    assert response.status_code == 200
    assert response.json()["completed"] is True

    reopened = client.post(f"/api/syllabus/topics/{completed_topic}/toggle", json={"completed": False})
    assert reopened.json()["completed"] is False
    progress = client.get(f"/api/syllabus/subjects/{seeded.subject_id}/progress").json()
    assert progress["completed_topics"] == 0


def test_delete_topic_releases_pending_tasks(seed) -> None:
    seeded = _two_topic_subject(seed)
    client.post("/api/tasks/generate", json={"scope": "daily"})
    doomed = seeded.topic_ids[0]

    response = client.delete(f"/api/syllabus/topics/{doomed}")

    assert response.status_code == 204
    with session_scope(commit=False) as session:
        sources = session.execute(select(TaskModel.source_id)).scalars().all()
    assert doomed not in sources
    progress = client.get(f"/api/syllabus/subjects/{seeded.subject_id}/progress").json()
    assert progress["total_topics"] == 2
    assert progress["completed_topics"] == 1


def test_delete_chapter_recomputes_totals(seed) -> None:
    seeded = _two_topic_subject(seed)
    client.post("/api/tasks/generate", json={"scope": "daily"})

    response = client.delete(f"/api/syllabus/chapters/{seeded.chapter_ids[0]}")

    assert response.status_code == 204
    with session_scope(commit=False) as session:
        assert session.execute(select(TaskModel.id).where(TaskModel.source_kind == "topic")).first() is None
    progress = client.get(f"/api/syllabus/subjects/{seeded.subject_id}/progress").json()
    assert progress["total_chapters"] == 1
    assert progress["percentage_complete"] == 100


def test_recompute_endpoint(seed) -> None:
    seeded = _two_topic_subject(seed)

    response = client.post(f"/api/syllabus/subjects/{seeded.subject_id}/progress/recompute")

    assert response.status_code == 200
    assert response.json()["percentage_complete"] == 33
    assert response.json()["is_on_track"] is True


def test_unknown_nodes_return_404() -> None:
    assert client.post("/api/syllabus/topics/missing/toggle").status_code == 404
    assert client.delete("/api/syllabus/topics/missing").status_code == 404
    assert client.delete("/api/syllabus/chapters/missing").status_code == 404
    assert client.get("/api/syllabus/subjects/missing/progress").status_code == 404
    assert client.post("/api/syllabus/subjects/missing/progress/recompute").status_code == 404
