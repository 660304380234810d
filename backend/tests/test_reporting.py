from __future__ import annotations

import csv
import io
import json
from datetime import date
from typing import Any, Dict, List

import pytest

from syllabus_tracker import mailer
from syllabus_tracker.config import Settings
from syllabus_tracker.curriculum import TaskConfigStore
from syllabus_tracker.db.session import session_scope
from syllabus_tracker.errors import TransientDownstreamError
from syllabus_tracker.mailer import SmtpMailTransport
from syllabus_tracker.progress_aggregator import aggregator
from syllabus_tracker.reporting import REPORT_COLUMNS, report_pipeline


def _seed_two_classes(seed) -> None:
    first = seed("Physics", class_id="class-1", chapters=[("Mechanics", None, [("A", date(2025, 3, 1), True)])])
    seed("Chemistry", class_id="class-2")
    with session_scope() as session:
        aggregator.recompute(session, first.subject_id)


def test_json_report_lists_subject_progress(seed) -> None:
    _seed_two_classes(seed)

    document = json.loads(report_pipeline.generate_report("weekly", "json", {}))

    assert document["report_type"] == "weekly"
    subjects = {row["subject"]: row for row in document["subjects"]}
    assert subjects["Physics"]["percentage_complete"] == 100
    assert subjects["Chemistry"]["percentage_complete"] == 0


def test_csv_report_honours_class_filter(seed) -> None:
    _seed_two_classes(seed)

    payload = report_pipeline.generate_report("custom", "csv", {"class_id": "class-2"}).decode("utf-8")

    rows = list(csv.DictReader(io.StringIO(payload)))
    assert tuple(rows[0].keys()) == REPORT_COLUMNS
    assert [row["subject"] for row in rows] == ["Chemistry"]


def test_unsupported_report_format() -> None:
    with pytest.raises(ValueError):
        report_pipeline.generate_report("weekly", "pdf", {})


class _FakeSMTP:
    instances: List["_FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: int) -> None:
        self.host = host
        self.port = port
        self.messages: List[Any] = []
        self.calls: List[str] = []
        _FakeSMTP.instances.append(self)

    def __enter__(self) -> "_FakeSMTP":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def starttls(self) -> None:
        self.calls.append("starttls")

    def login(self, user: str, password: str) -> None:
        self.calls.append(f"login:{user}")

    def send_message(self, message: Any) -> None:
        self.messages.append(message)


def _settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {"SYLLABUS_SMTP_HOST": "smtp.example.com", "SYLLABUS_SMTP_USER": "bot", "SYLLABUS_SMTP_PASSWORD": "secret"}
    values.update(overrides)
    return Settings(**values)


def test_mail_transport_attaches_report(monkeypatch) -> None:
    _FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer.smtplib, "SMTP", _FakeSMTP)

    SmtpMailTransport(_settings()).send_with_attachment(
        ["teacher@example.com"], "Scheduled Report: Weekly", "See attached", b"a,b\n", "weekly.csv"
    )

    [client] = _FakeSMTP.instances
    assert client.calls == ["starttls", "login:bot"]
    [message] = client.messages
    assert message["To"] == "teacher@example.com"
    [attachment] = list(message.iter_attachments())
    assert attachment.get_filename() == "weekly.csv"
    assert attachment.get_content_type() == "text/csv"


def test_mail_transport_requires_host() -> None:
    transport = SmtpMailTransport(_settings(SYLLABUS_SMTP_HOST=None))

    with pytest.raises(TransientDownstreamError):
        transport.send_with_attachment(["a@example.com"], "s", "b", b"{}", "r.json")


def test_config_store_hands_out_copies() -> None:
    store = TaskConfigStore()
    snapshot = store.get()

    updated = store.update(days_before_deadline=3, weekly_tasks_enabled=None)

    assert snapshot.days_before_deadline == 7
    assert updated.days_before_deadline == 3
    assert updated.weekly_tasks_enabled is True
    store.reset()
    assert store.get().days_before_deadline == 7
