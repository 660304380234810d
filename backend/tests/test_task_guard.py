from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from syllabus_tracker.curriculum import TaskCandidate, TaskGenerationConfig
from syllabus_tracker.db.models import TaskModel
from syllabus_tracker.db.session import session_scope
from syllabus_tracker.repositories.tasks import TaskFilter, TaskRepository, task_store
from syllabus_tracker.task_guard import MAX_PENDING_TASKS, TaskAdmissionGuard, task_guard
from syllabus_tracker.task_synthesizer import GenerationWindow, generate_tasks
from syllabus_tracker.telemetry import capture_events

NOW = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def _candidate(subject_id: str, title: str = "Complete Topic: Optics", **overrides) -> TaskCandidate:
    fields = {
        "class_id": "class-1",
        "subject_id": subject_id,
        "task_date": TODAY,
        "title": title,
        "priority": "medium",
        "task_type": "daily",
    }
    fields.update(overrides)
    return TaskCandidate(**fields)


def _titles() -> List[str]:
    with session_scope(commit=False) as session:
        return sorted(session.execute(select(TaskModel.title)).scalars().all())


def test_duplicate_pending_task_is_suppressed_inside_window(seed) -> None:
    subject = seed()
    with session_scope() as session:
        first = task_guard.admit(session, _candidate(subject.subject_id), now=NOW)
        second = task_guard.admit(session, _candidate(subject.subject_id), now=NOW + timedelta(days=6))

    assert first.outcome == "created"
    assert second.outcome == "duplicate"
    assert len(_titles()) == 1


def test_duplicate_window_expires(seed) -> None:
    subject = seed()
    with session_scope() as session:
        task_guard.admit(session, _candidate(subject.subject_id), now=NOW)
        later = task_guard.admit(session, _candidate(subject.subject_id), now=NOW + timedelta(days=8))

    assert later.outcome == "created"
    assert len(_titles()) == 2


def test_completed_tasks_do_not_block_new_ones(seed) -> None:
    subject = seed()
    with session_scope() as session:
        created = task_guard.admit(session, _candidate(subject.subject_id), now=NOW)
        assert created.task is not None
        task_store.toggle_completed(session, created.task.id)
        again = task_guard.admit(session, _candidate(subject.subject_id), now=NOW + timedelta(hours=1))

    assert again.outcome == "created"


def test_capacity_ceiling_per_subject_and_type(seed) -> None:
    subject = seed()
    with session_scope() as session:
        outcomes = [
            task_guard.admit(session, _candidate(subject.subject_id, f"Task {index}"), now=NOW).outcome
            for index in range(MAX_PENDING_TASKS + 1)
        ]
        weekly = task_guard.admit(
            session,
            _candidate(subject.subject_id, "Weekly Review: Physics Progress", task_type="weekly"),
            now=NOW,
        )

    assert outcomes.count("created") == MAX_PENDING_TASKS
    assert outcomes[-1] == "capacity"
    assert weekly.outcome == "created"


def test_cleanup_duplicates_keeps_earliest(seed) -> None:
    subject = seed()
    with session_scope() as session:
        for offset in (2, 0, 1):
            task_store.create_task(session, _candidate(subject.subject_id), created_at=NOW + timedelta(hours=offset))
        task_store.create_task(session, _candidate(subject.subject_id, "Other"), created_at=NOW)

    with capture_events("task_cleanup") as events, session_scope() as session:
        removed = task_guard.cleanup_duplicates(session)

    assert removed == 2
    with session_scope(commit=False) as session:
        remaining = task_store.list_tasks(session, TaskFilter(title="Complete Topic: Optics"))
    assert len(remaining) == 1
    assert remaining[0].created_at == NOW
    assert _titles() == ["Complete Topic: Optics", "Other"]
    assert [(event.get("kind"), event.get("removed")) for event in events] == [("duplicates", 2)]


def test_cleanup_old_only_removes_stale_completed_tasks(seed) -> None:
    subject = seed()
    with session_scope() as session:
        stale = task_store.create_task(session, _candidate(subject.subject_id, "Stale"), created_at=NOW - timedelta(days=40))
        recent = task_store.create_task(session, _candidate(subject.subject_id, "Recent"), created_at=NOW - timedelta(days=40))
        task_store.create_task(session, _candidate(subject.subject_id, "Pending"), created_at=NOW - timedelta(days=40))
        for task_id, touched in ((stale.id, NOW - timedelta(days=31)), (recent.id, NOW - timedelta(days=10))):
            model = session.get(TaskModel, task_id)
            model.completed = True
            model.updated_at = touched

    with session_scope() as session:
        removed = task_guard.cleanup_old(session, now=NOW)

    assert removed == 1
    assert _titles() == ["Pending", "Recent"]


def test_cleanup_orphans_and_released_sources(seed) -> None:
    subject = seed(chapters=[("Mechanics", None, [("Kinematics", TODAY, False)])])
    topic_id = subject.topic_ids[0]
    with session_scope() as session:
        task_store.create_task(
            session, _candidate(subject.subject_id, "Live", source_kind="topic", source_id=topic_id)
        )
        task_store.create_task(
            session, _candidate(subject.subject_id, "Orphan", source_kind="topic", source_id="deleted-topic")
        )
        task_store.create_task(session, _candidate(subject.subject_id, "Manual"))

    with session_scope() as session:
        assert task_guard.cleanup_orphans(session) == 1
    assert _titles() == ["Live", "Manual"]

    with session_scope() as session:
        assert task_guard.release_sources(session, "topic", [topic_id]) == 1
        assert task_guard.release_sources(session, "topic", []) == 0
    assert _titles() == ["Manual"]


def test_generation_rerun_creates_nothing_new(seed) -> None:
    seed(
        deadline=TODAY + timedelta(days=20),
        chapters=[
            (
                "Mechanics",
                None,
                [("Kinematics", TODAY - timedelta(days=2), False), ("Dynamics", TODAY + timedelta(days=2), False)],
            )
        ],
    )
    config = TaskGenerationConfig()

    with session_scope() as session:
        first = generate_tasks(session, "all", config, now=NOW)
    with session_scope() as session:
        second = generate_tasks(session, "all", config, now=NOW + timedelta(hours=3))

    assert first.overdue == 1
    assert first.created > 0
    assert second.created == 0
    assert second.skipped_duplicate == first.created
    titles = _titles()
    assert "URGENT: Overdue Topic - Kinematics - Mechanics" in titles
    assert "Complete Topic: Dynamics - Mechanics [2025-03-10]" in titles
    assert "Weekly Review: Physics Progress" in titles
    assert "Monthly Assessment: Physics" in titles


def test_generation_honours_disabled_scope(seed) -> None:
    seed(chapters=[("Mechanics", None, [("Dynamics", TODAY + timedelta(days=2), False)])])

    with session_scope() as session:
        summary = generate_tasks(
            session, "daily", TaskGenerationConfig(daily_tasks_enabled=False), now=NOW
        )

    assert summary.created == 0
    assert _titles() == []


def test_overdue_alert_ignores_window(seed) -> None:
    seed(chapters=[("Mechanics", None, [("Kinematics", date(2025, 3, 1), False)])])
    window = GenerationWindow(start=TODAY + timedelta(days=5), end=TODAY + timedelta(days=6))

    with session_scope() as session:
        summary = generate_tasks(session, "daily", TaskGenerationConfig(), window=window, now=NOW)

    assert summary.created == 1
    assert _titles() == ["URGENT: Overdue Topic - Kinematics - Mechanics"]


class _UnreadableStore(TaskRepository):
    def has_pending(self, session, task_filter) -> bool:
        raise OperationalError("SELECT", {}, Exception("database is locked"))


def test_failed_admission_check_drops_candidate(seed) -> None:
    subject = seed()
    guard = TaskAdmissionGuard(store=_UnreadableStore())

    with session_scope() as session:
        admission = guard.admit(session, _candidate(subject.subject_id), now=NOW)

    assert admission.outcome == "dropped"
    assert _titles() == []


class _DanglingSubjectStore(TaskRepository):
    """Writes Dynamics tasks against a subject that does not exist."""

    def create_task(self, session, candidate, *, created_at=None):
        if "Dynamics" in candidate.title:
            candidate = candidate.model_copy(update={"subject_id": "missing-subject"})
        return super().create_task(session, candidate, created_at=created_at)


def test_failed_task_write_is_dropped_without_aborting_generation(seed) -> None:
    seed(
        chapters=[
            (
                "Mechanics",
                None,
                [("Kinematics", TODAY - timedelta(days=2), False), ("Dynamics", TODAY + timedelta(days=2), False)],
            )
        ],
    )
    guard = TaskAdmissionGuard(store=_DanglingSubjectStore())

    with session_scope() as session:
        summary = generate_tasks(session, "daily", TaskGenerationConfig(), now=NOW, guard=guard)

    assert summary.dropped >= 1
    assert summary.created == 1
    assert _titles() == ["URGENT: Overdue Topic - Kinematics - Mechanics"]
