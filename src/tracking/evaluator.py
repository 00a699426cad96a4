"""Schedule evaluator — turn recurrence rules into concrete due times.

Pure, deterministic, side-effect-free functions over ScheduleDefinition.
Nothing here reads the clock; callers pass the day or instant explicitly.

Weekday numbering follows ISO 8601 (Monday=1 … Sunday=7), which is what
``date.isoweekday()`` returns.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator
from uuid import UUID

from src.tracking.base import DueSlot, Frequency, ScheduleDefinition

logger = logging.getLogger("adhera.tracking.evaluator")

# Expected-dose weight per frequency on a matching day, used by adherence rate
_EXPECTED_PER_DAY: dict[Frequency, int] = {
    Frequency.daily: 1,
    Frequency.twice_daily: 2,
    Frequency.three_times_daily: 3,
    Frequency.weekly: 1,
    Frequency.custom: 1,
    Frequency.as_needed: 0,
}


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def _in_date_range(schedule: ScheduleDefinition, day: date) -> bool:
    if day < schedule.start_date:
        return False
    if schedule.end_date is not None and day > schedule.end_date:
        return False
    return True


def _day_selected(schedule: ScheduleDefinition, day: date) -> bool:
    """Return True if the recurrence rule selects ``day`` (ignores date range)."""
    frequency = schedule.frequency
    if frequency.is_daily_family:
        return True
    if frequency is Frequency.weekly:
        return day.isoweekday() in schedule.days_of_week
    if frequency is Frequency.custom:
        days_since_start = (day - schedule.start_date).days
        return days_since_start >= 0 and days_since_start % schedule.interval_days == 0
    return False  # as_needed


def is_active_on(schedule: ScheduleDefinition, day: date) -> bool:
    """Return True if doses are expected from ``schedule`` on ``day``.

    Combines the start/end date range with the recurrence day selection.
    The schedule's ``active`` flag is not considered here; callers filter
    inactive schedules out before evaluating.
    """
    return _in_date_range(schedule, day) and _day_selected(schedule, day)


def due_times_on_day(schedule: ScheduleDefinition, day: date) -> list[datetime]:
    """Project the schedule's times of day onto ``day``.

    Args:
        schedule: A valid schedule.
        day:      Local calendar day.

    Returns:
        Ascending list of local datetimes; empty when the day is outside the
        schedule's date range, not selected by the rule, or the schedule is
        as-needed.
    """
    if schedule.frequency is Frequency.as_needed or not is_active_on(schedule, day):
        return []
    return [datetime.combine(day, t) for t in schedule.times_of_day]


def _scan_bound_days(schedule: ScheduleDefinition) -> int:
    if schedule.frequency is Frequency.custom:
        return schedule.interval_days or 1
    if schedule.frequency is Frequency.weekly:
        return 7
    return 1


def next_due_time(schedule: ScheduleDefinition, after: datetime) -> datetime | None:
    """Return the first due time strictly after ``after``, if any.

    Scans forward day by day starting at ``after``'s day (or the schedule's
    start date, whichever is later).  The scan covers at most one full
    recurrence period beyond the first day: ``interval_days`` for custom
    schedules, 7 for weekly, 1 for the daily family.  Stops early once the
    end date is passed.

    Args:
        schedule: A valid schedule.
        after:    Exclusive lower bound.

    Returns:
        The next due datetime, or None for as-needed schedules, ended
        schedules, or when nothing falls inside the scan window.
    """
    if schedule.frequency is Frequency.as_needed:
        return None

    first_day = max(after.date(), schedule.start_date)
    for offset in range(_scan_bound_days(schedule) + 1):
        day = first_day + timedelta(days=offset)
        if schedule.end_date is not None and day > schedule.end_date:
            return None
        for due in due_times_on_day(schedule, day):
            if due > after:
                return due
    return None


def expected_dose_count(schedule: ScheduleDefinition, day: date) -> int:
    """Number of doses the adherence rate expects from ``schedule`` on ``day``.

    Daily=1, TwiceDaily=2, ThreeTimesDaily=3, Weekly and Custom=1 on a
    matching day, AsNeeded=0.  Zero outside the schedule's date range.
    """
    if not is_active_on(schedule, day):
        return 0
    return _EXPECTED_PER_DAY[schedule.frequency]


def due_slots_on_day(
    schedules: Iterable[ScheduleDefinition],
    day: date,
    subject_id: UUID | None = None,
) -> list[DueSlot]:
    """Union of due slots over the active schedules for one day.

    Args:
        schedules:  Schedules to evaluate; inactive ones are skipped.
        day:        Local calendar day.
        subject_id: Restrict to one subject when given.

    Returns:
        Slots ordered by scheduled time, then subject, then schedule id.
    """
    slots: list[DueSlot] = []
    for schedule in schedules:
        if not schedule.active:
            continue
        if subject_id is not None and schedule.subject_id != subject_id:
            continue
        for due in due_times_on_day(schedule, day):
            slots.append(
                DueSlot(
                    scheduled_time=due,
                    subject_id=schedule.subject_id,
                    source_schedule_id=schedule.id,
                )
            )
    slots.sort()
    return slots
