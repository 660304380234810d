from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from zoneinfo import ZoneInfo

from syllabus_tracker.errors import ScheduleValidationError
from syllabus_tracker.schedules import (
    DailySchedule,
    MonthlySchedule,
    WeeklySchedule,
    local_today,
    next_run_after,
    parse_schedule,
)

UTC = ZoneInfo("UTC")


def _utc(*parts: int) -> datetime:
    return datetime(*parts, tzinfo=timezone.utc)


def test_weekly_fire_moves_one_week_forward() -> None:
    schedule = parse_schedule({"frequency": "weekly", "day_of_week": 1, "time": "09:00"})

    assert isinstance(schedule, WeeklySchedule)
    # 2025-03-10 is a Monday.
    assert next_run_after(schedule, _utc(2025, 3, 10, 9, 0), UTC) == _utc(2025, 3, 17, 9, 0)
    assert next_run_after(schedule, _utc(2025, 3, 10, 8, 59), UTC) == _utc(2025, 3, 10, 9, 0)


def test_weekly_uses_sunday_as_day_zero() -> None:
    schedule = WeeklySchedule(day_of_week=0, time="18:30")

    assert next_run_after(schedule, _utc(2025, 3, 10, 0, 0), UTC) == _utc(2025, 3, 16, 18, 30)


def test_daily_rolls_to_next_day_after_time_passes() -> None:
    schedule = DailySchedule(time="09:00")

    assert next_run_after(schedule, _utc(2025, 3, 10, 10, 0), UTC) == _utc(2025, 3, 11, 9, 0)


def test_monthly_day_is_clamped_to_month_end() -> None:
    schedule = parse_schedule({"frequency": "monthly", "day_of_month": 31, "time": "06:00"})

    assert isinstance(schedule, MonthlySchedule)
    assert next_run_after(schedule, _utc(2025, 4, 1, 0, 0), UTC) == _utc(2025, 4, 30, 6, 0)
    assert next_run_after(schedule, _utc(2025, 2, 1, 0, 0), UTC) == _utc(2025, 2, 28, 6, 0)
    assert next_run_after(schedule, _utc(2025, 12, 31, 7, 0), UTC) == _utc(2026, 1, 31, 6, 0)


def test_wall_time_is_interpreted_in_scheduler_timezone() -> None:
    schedule = DailySchedule(time="09:00")
    new_york = ZoneInfo("America/New_York")

    # Daylight saving time is already in effect on 2025-03-10 (UTC-4).
    assert next_run_after(schedule, _utc(2025, 3, 10, 12, 0), new_york) == _utc(2025, 3, 10, 13, 0)


def test_naive_reference_is_treated_as_utc() -> None:
    schedule = DailySchedule(time="09:00")

    assert next_run_after(schedule, datetime(2025, 3, 10, 8, 0), UTC) == _utc(2025, 3, 10, 9, 0)


@pytest.mark.parametrize(
    "payload",
    [
        {"frequency": "daily"},
        {"frequency": "daily", "time": "25:00"},
        {"frequency": "daily", "time": "9am"},
        {"frequency": "weekly", "time": "09:00"},
        {"frequency": "weekly", "day_of_week": 7, "time": "09:00"},
        {"frequency": "monthly", "day_of_month": 0, "time": "09:00"},
        {"frequency": "hourly", "time": "09:00"},
    ],
)
def test_invalid_schedules_are_rejected(payload) -> None:
    with pytest.raises(ScheduleValidationError):
        parse_schedule(payload)


def test_absent_optional_fields_are_ignored() -> None:
    schedule = parse_schedule({"frequency": "daily", "time": "07:15", "day_of_week": None, "day_of_month": None})

    assert isinstance(schedule, DailySchedule)
    assert schedule.time == "07:15"


def test_local_today_follows_the_given_zone() -> None:
    evening = datetime(2025, 3, 9, 19, 0)

    assert local_today(evening, UTC) == date(2025, 3, 9)
    assert local_today(evening.replace(tzinfo=timezone.utc), ZoneInfo("Asia/Kolkata")) == date(2025, 3, 10)
