"""Structured telemetry events for task generation, progress and scheduling.

Events are logged as one JSON line on the ``syllabus.telemetry`` logger and
fanned out to in-process listeners. Payload values are normalised before
either sees them: dates become ISO strings, and sets and tuples become lists,
recursively through nested mappings and sequences.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List, Mapping

TELEMETRY_LOGGER = "syllabus.telemetry"

logger = logging.getLogger(TELEMETRY_LOGGER)

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)


_listeners: List[Listener] = []
_lock = RLock()


def register_listener(listener: Listener) -> None:
    with _lock:
        _listeners.append(listener)


def unregister_listener(listener: Listener) -> bool:
    """Detach a listener; returns False when it was not registered."""
    with _lock:
        try:
            _listeners.remove(listener)
        except ValueError:
            return False
        return True


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


@contextmanager
def capture_events(*names: str) -> Iterator[List[TelemetryEvent]]:
    """Collect events emitted inside the block, optionally only those named.

    The returned list fills in as events arrive and stays usable after the
    block exits.
    """
    captured: List[TelemetryEvent] = []
    wanted = frozenset(names)

    def _capture(event: TelemetryEvent) -> None:
        if not wanted or event.name in wanted:
            captured.append(event)

    register_listener(_capture)
    try:
        yield captured
    finally:
        unregister_listener(_capture)


def emit_event(name: str, **fields: Any) -> TelemetryEvent:
    """Emit a structured telemetry event and fan it out to listeners."""
    event = TelemetryEvent(name=name, payload=_normalize_mapping(fields))

    with _lock:
        listeners = list(_listeners)
    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    if logger.isEnabledFor(logging.INFO):
        logger.info("TELEMETRY %s", json.dumps({"event": name, **event.payload}, default=str, sort_keys=True))
    return event


def _normalize_mapping(values: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(key): _normalize(value) for key, value in values.items()}


def _normalize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return _normalize_mapping(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        return [_normalize(item) for item in items]
    return value


__all__ = [
    "Listener",
    "TELEMETRY_LOGGER",
    "TelemetryEvent",
    "capture_events",
    "clear_listeners",
    "emit_event",
    "register_listener",
    "unregister_listener",
]
