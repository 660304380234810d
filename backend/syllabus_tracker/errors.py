"""Failure taxonomy for the tracking core.

Nothing raised here is meant to abort a host request or the scheduler loop:
routes map these onto HTTP status codes, background work logs and skips.
"""

from __future__ import annotations


class SyllabusError(Exception):
    """Base class for tracking-core failures."""


class NotFoundError(SyllabusError, LookupError):
    """A subject, chapter, topic, task or job vanished mid-operation."""


class ScheduleValidationError(SyllabusError, ValueError):
    """A scheduled job definition is malformed."""


class TransientDownstreamError(SyllabusError):
    """Report pipeline or mail transport failed during a firing."""


class InvariantViolation(SyllabusError):
    """A dedup or capacity check could not be evaluated."""


__all__ = [
    "InvariantViolation",
    "NotFoundError",
    "ScheduleValidationError",
    "SyllabusError",
    "TransientDownstreamError",
]
