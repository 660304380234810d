from __future__ import annotations

from datetime import date, datetime, timezone

from syllabus_tracker.telemetry import (
    TelemetryEvent,
    capture_events,
    emit_event,
    register_listener,
    unregister_listener,
)


def test_nested_payload_values_are_normalised() -> None:
    with capture_events() as events:
        emit_event(
            "task_cleanup",
            cutoff=datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc),
            window={"start": date(2025, 3, 10), "dates": (date(2025, 3, 11),)},
            kinds={"old", "duplicates"},
        )

    assert events[0].payload == {
        "cutoff": "2025-03-10T08:00:00+00:00",
        "window": {"start": "2025-03-10", "dates": ["2025-03-11"]},
        "kinds": ["duplicates", "old"],
    }


def test_capture_filters_by_name_and_detaches() -> None:
    with capture_events("progress_recomputed") as events:
        emit_event("task_generation", created=1)
        emit_event("progress_recomputed", subject_id="s-1")
    emit_event("progress_recomputed", subject_id="s-2")

    assert [event.get("subject_id") for event in events] == ["s-1"]


def test_failing_listener_does_not_block_others() -> None:
    def explode(_: TelemetryEvent) -> None:
        raise RuntimeError("listener down")

    register_listener(explode)
    with capture_events() as events:
        emitted = emit_event("scheduled_job_stopped", job_id="job-1")

    assert events == [emitted]
    assert unregister_listener(explode) is True
    assert unregister_listener(explode) is False
