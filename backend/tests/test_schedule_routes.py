from __future__ import annotations

from datetime import datetime, timezone

from fastapi.testclient import TestClient

from syllabus_tracker.main import app

client = TestClient(app)


def _create(**overrides):
    payload = {
        "name": "Weekly Progress",
        "recipients": ["teacher@example.com"],
        "report_type": "weekly",
        "frequency": "weekly",
        "day_of_week": 1,
        "time": "09:00",
    }
    payload.update(overrides)
    return client.post("/api/scheduled-jobs", json=payload)


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_create_job_computes_next_run() -> None:
    response = _create()

    assert response.status_code == 201
    job = response.json()
    assert job["is_active"] is True
    assert job["format"] == "json"
    assert job["schedule"] == {"frequency": "weekly", "day_of_week": 1, "time": "09:00"}
    next_run = _parse(job["next_run"])
    assert next_run > datetime.now(timezone.utc)
    assert next_run.weekday() == 0
    assert (next_run.hour, next_run.minute) == (9, 0)
    assert job["last_run"] is None


def test_task_generation_job_defaults_scope() -> None:
    response = _create(
        name="Nightly tasks",
        job_type="task_generation",
        report_type=None,
        frequency="daily",
        day_of_week=None,
        recipients=[],
    )

    assert response.status_code == 201
    job = response.json()
    assert job["task_scope"] == "all"
    assert job["report_type"] is None


def test_invalid_schedules_are_rejected() -> None:
    assert _create(day_of_week=None).status_code == 422
    assert _create(time=None).status_code == 422
    assert _create(time="24:00").status_code == 422
    assert _create(frequency="monthly", day_of_month=32).status_code == 422
    assert client.get("/api/scheduled-jobs").json() == []


def test_activate_and_deactivate() -> None:
    job_id = _create().json()["id"]

    deactivated = client.post(f"/api/scheduled-jobs/{job_id}/deactivate")
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False
    assert client.get("/api/scheduled-jobs", params={"active_only": "true"}).json() == []

    activated = client.post(f"/api/scheduled-jobs/{job_id}/activate")
    assert activated.status_code == 200
    assert activated.json()["is_active"] is True
    assert _parse(activated.json()["next_run"]) > datetime.now(timezone.utc)


def test_run_now_stamps_last_run_even_when_delivery_fails() -> None:
    job_id = _create().json()["id"]

    response = client.post(f"/api/scheduled-jobs/{job_id}/run")

    assert response.status_code == 200
    job = response.json()
    assert job["last_run"] is not None
    assert _parse(job["next_run"]) > _parse(job["last_run"])


def test_delete_job() -> None:
    job_id = _create().json()["id"]

    assert client.delete(f"/api/scheduled-jobs/{job_id}").status_code == 204
    assert client.get("/api/scheduled-jobs").json() == []
    assert client.delete(f"/api/scheduled-jobs/{job_id}").status_code == 404


def test_unknown_job_returns_404() -> None:
    for action in ("activate", "deactivate", "run"):
        assert client.post(f"/api/scheduled-jobs/missing/{action}").status_code == 404
