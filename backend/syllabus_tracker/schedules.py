"""Recurring schedule definitions and next-occurrence arithmetic.

A schedule is one of three closed variants (daily, weekly, monthly), each
carrying a wall-clock ``time`` in ``HH:MM``. ``day_of_week`` follows cron
numbering (0 = Sunday). Monthly schedules whose ``day_of_month`` exceeds the
length of a month fire on that month's last day.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import get_settings
from .errors import ScheduleValidationError

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class _ScheduleBase(BaseModel):
    time: str

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        value = value.strip()
        if not _TIME_PATTERN.match(value):
            raise ValueError("time must be formatted as HH:MM (24-hour clock)")
        return value

    @property
    def wall_time(self) -> time:
        hours, minutes = self.time.split(":")
        return time(int(hours), int(minutes))

    def _at(self, day: date, tz: ZoneInfo) -> datetime:
        return datetime.combine(day, self.wall_time, tzinfo=tz)

    def next_occurrence(self, after: datetime, tz: ZoneInfo) -> datetime:  # pragma: no cover - abstract
        raise NotImplementedError


class DailySchedule(_ScheduleBase):
    frequency: Literal["daily"] = "daily"

    def next_occurrence(self, after: datetime, tz: ZoneInfo) -> datetime:
        local = after.astimezone(tz)
        candidate = self._at(local.date(), tz)
        if candidate <= local:
            candidate = self._at(local.date() + timedelta(days=1), tz)
        return candidate


class WeeklySchedule(_ScheduleBase):
    frequency: Literal["weekly"] = "weekly"
    day_of_week: int = Field(..., ge=0, le=6)

    def next_occurrence(self, after: datetime, tz: ZoneInfo) -> datetime:
        local = after.astimezone(tz)
        # date.weekday() is Monday=0; shift to cron's Sunday=0.
        today_cron = (local.weekday() + 1) % 7
        delta = (self.day_of_week - today_cron) % 7
        candidate = self._at(local.date() + timedelta(days=delta), tz)
        if candidate <= local:
            candidate = self._at(local.date() + timedelta(days=delta + 7), tz)
        return candidate


class MonthlySchedule(_ScheduleBase):
    frequency: Literal["monthly"] = "monthly"
    day_of_month: int = Field(..., ge=1, le=31)

    def _in_month(self, year: int, month: int) -> date:
        last_day = calendar.monthrange(year, month)[1]
        return date(year, month, min(self.day_of_month, last_day))

    def next_occurrence(self, after: datetime, tz: ZoneInfo) -> datetime:
        local = after.astimezone(tz)
        year, month = local.year, local.month
        candidate = self._at(self._in_month(year, month), tz)
        while candidate <= local:
            month += 1
            if month > 12:
                month = 1
                year += 1
            candidate = self._at(self._in_month(year, month), tz)
        return candidate


Schedule = Annotated[
    Union[DailySchedule, WeeklySchedule, MonthlySchedule],
    Field(discriminator="frequency"),
]

_schedule_adapter: TypeAdapter[Any] = TypeAdapter(Schedule)


def parse_schedule(payload: Dict[str, Any]) -> Union[DailySchedule, WeeklySchedule, MonthlySchedule]:
    """Validate a raw schedule mapping, raising ScheduleValidationError on failure."""
    cleaned = {key: value for key, value in payload.items() if value is not None}
    if not cleaned.get("time"):
        raise ScheduleValidationError("Schedule is missing a time of day.")
    try:
        return _schedule_adapter.validate_python(cleaned)
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        raise ScheduleValidationError(f"Invalid schedule: {messages}") from exc


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except ZoneInfoNotFoundError as exc:
        raise ScheduleValidationError(f"Unknown timezone '{name}'.") from exc


def scheduler_zone() -> ZoneInfo:
    """The zone whose calendar decides what "today" means for jobs, tasks and progress."""
    return resolve_timezone(get_settings().scheduler_timezone)


def local_today(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> date:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or scheduler_zone()).date()


def next_run_after(
    schedule: Union[DailySchedule, WeeklySchedule, MonthlySchedule],
    after: datetime,
    tz: ZoneInfo,
) -> datetime:
    """Return the next firing instant strictly after ``after``, in UTC."""
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)
    return schedule.next_occurrence(after, tz).astimezone(timezone.utc)


JobType = Literal["report", "task_generation"]
ReportType = Literal["weekly", "monthly", "custom"]
ReportFormat = Literal["json", "csv"]


class ScheduledJob(BaseModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    job_type: JobType
    report_type: Optional[ReportType] = None
    format: Optional[ReportFormat] = None
    recipients: List[str] = Field(default_factory=list)
    filters: Dict[str, Any] = Field(default_factory=dict)
    task_scope: Optional[Literal["daily", "weekly", "monthly", "all"]] = None
    schedule: Schedule
    is_active: bool = True
    last_run: Optional[datetime] = None
    next_run: datetime


__all__ = [
    "DailySchedule",
    "JobType",
    "MonthlySchedule",
    "ReportFormat",
    "ReportType",
    "Schedule",
    "ScheduledJob",
    "WeeklySchedule",
    "local_today",
    "next_run_after",
    "parse_schedule",
    "resolve_timezone",
    "scheduler_zone",
]
