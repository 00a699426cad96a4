"""Schedule normalization — repair a ScheduleDraft into a valid ScheduleDefinition.

Validation in the tracking core never rejects input.  Each rule below
deterministically corrects one kind of problem and records a short
description of what it changed:

- no times of day                → one default time (09:00)
- duplicate / unordered times    → de-duplicated and sorted
- too many times for frequency   → truncated to the frequency's maximum
- too few times (2x / 3x daily)  → padded from the configured default times
- as-needed with times           → times cleared
- weekly without valid weekdays  → default weekday (Monday)
- weekday outside 1..7           → dropped
- custom without interval ≥ 1    → default interval (1 day)
- start date missing             → today
- start date > 10 years ahead    → today
- end date before start date     → end date removed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from uuid import UUID

from src.tracking.base import (
    TIMES_PER_DAY_BOUNDS,
    Frequency,
    ScheduleDefinition,
    ScheduleDraft,
)
from src.tracking.config_loader import NormalizationConfig

logger = logging.getLogger("adhera.tracking.validation")


@dataclass(frozen=True)
class NormalizationResult:
    """A valid schedule plus the list of corrections applied to reach it."""

    schedule: ScheduleDefinition
    corrections: list[str] = field(default_factory=list)

    @property
    def was_normalized(self) -> bool:
        return bool(self.corrections)


def _fit_times(
    frequency: Frequency,
    raw_times: list[time],
    config: NormalizationConfig,
    corrections: list[str],
) -> tuple[time, ...]:
    low, high = TIMES_PER_DAY_BOUNDS[frequency]

    times = sorted(set(raw_times))
    if len(times) != len(raw_times):
        corrections.append("removed duplicate times of day")

    if high == 0:
        if times:
            corrections.append("cleared times of day for as-needed schedule")
        return ()

    if not times:
        times = [config.default_time_of_day]
        corrections.append(
            f"added default time {config.default_time_of_day.strftime('%H:%M')}"
        )

    if len(times) > high:
        corrections.append(f"truncated times of day from {len(times)} to {high}")
        times = times[:high]

    if len(times) < low:
        padding = [t for t in config.default_times.get(frequency, []) if t not in times]
        # Fall back to hourly steps after the latest time if defaults run out
        candidate = times[-1]
        while len(times) + len(padding) < low:
            candidate = time((candidate.hour + 1) % 24, candidate.minute)
            if candidate not in times and candidate not in padding:
                padding.append(candidate)
        added = padding[: low - len(times)]
        times = sorted(times + added)
        corrections.append(
            "padded times of day with " + ", ".join(t.strftime("%H:%M") for t in added)
        )

    return tuple(times)


def _fit_days_of_week(
    raw_days: list[int] | None,
    config: NormalizationConfig,
    corrections: list[str],
) -> frozenset[int]:
    days = {d for d in (raw_days or []) if 1 <= d <= 7}
    dropped = sorted(set(raw_days or []) - days)
    if dropped:
        corrections.append(f"dropped invalid weekdays {dropped}")
    if not days:
        days = {config.default_weekday}
        corrections.append(f"added default weekday {config.default_weekday}")
    return frozenset(days)


def normalize_schedule(
    draft: ScheduleDraft,
    config: NormalizationConfig,
    today: date,
    schedule_id: UUID | None = None,
    subject_name: str | None = None,
) -> NormalizationResult:
    """Turn a draft into a valid ScheduleDefinition.

    Args:
        draft:        The lenient input.
        config:       Normalization defaults.
        today:        Local calendar day used for start-date repairs.
        schedule_id:  Id to keep when editing an existing schedule.
        subject_name: Fallback display name when the draft has none.

    Returns:
        NormalizationResult with the schedule and the corrections made.
    """
    corrections: list[str] = []
    frequency = draft.frequency

    times = _fit_times(frequency, list(draft.times_of_day), config, corrections)

    days_of_week: frozenset[int] = frozenset()
    if frequency is Frequency.weekly:
        days_of_week = _fit_days_of_week(draft.days_of_week, config, corrections)

    interval_days: int | None = None
    if frequency is Frequency.custom:
        interval_days = draft.interval_days
        if interval_days is None or interval_days < 1:
            interval_days = config.default_custom_interval_days
            corrections.append(f"set custom interval to {interval_days} day(s)")

    start_date = draft.start_date
    if start_date is None:
        start_date = today
        corrections.append("set missing start date to today")
    elif start_date > today + timedelta(days=config.max_start_date_future_days):
        corrections.append(f"reset far-future start date {start_date} to today")
        start_date = today

    end_date = draft.end_date
    if end_date is not None and end_date < start_date:
        corrections.append(f"removed end date {end_date} before start date {start_date}")
        end_date = None

    name = (draft.subject_name or "").strip() or (subject_name or "").strip()
    if not name:
        name = str(draft.subject_id)
        corrections.append("subject name unavailable; using subject id")

    kwargs = {}
    if schedule_id is not None:
        kwargs["id"] = schedule_id

    schedule = ScheduleDefinition(
        subject_id=draft.subject_id,
        subject_name=name,
        frequency=frequency,
        start_date=start_date,
        times_of_day=times,
        days_of_week=days_of_week,
        interval_days=interval_days,
        active=draft.active,
        end_date=end_date,
        notes=draft.notes,
        **kwargs,
    )

    for correction in corrections:
        logger.info("Normalized schedule %s (%s): %s", schedule.id, name, correction)
    return NormalizationResult(schedule=schedule, corrections=corrections)
