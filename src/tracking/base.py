"""Canonical data models for the Adhera tracking core.

Every component of the core (evaluator, reconciler, analyzer, coordinator,
repositories, API layer) speaks in these types.  All of them are frozen
dataclasses so that snapshots handed to the pure engines can be shared
between readers without copying.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from uuid import UUID, uuid4

from src.tracking.errors import InvalidScheduleError

logger = logging.getLogger("adhera.tracking")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Frequency(str, Enum):
    daily = "daily"
    twice_daily = "twice_daily"
    three_times_daily = "three_times_daily"
    weekly = "weekly"
    custom = "custom"
    as_needed = "as_needed"

    @property
    def is_daily_family(self) -> bool:
        return self in (Frequency.daily, Frequency.twice_daily, Frequency.three_times_daily)


class DoseStatus(str, Enum):
    """Status derived from a recorded dose event."""

    taken = "taken"
    skipped = "skipped"
    missed = "missed"


class SlotStatus(str, Enum):
    """Status of a due slot after reconciliation."""

    taken = "taken"
    skipped = "skipped"
    missed = "missed"
    pending = "pending"


class RetentionPeriod(str, Enum):
    """How long history records are kept before bulk pruning."""

    weeks_2 = "2_weeks"
    month_1 = "1_month"
    months_3 = "3_months"
    months_6 = "6_months"
    year_1 = "1_year"
    years_2 = "2_years"
    forever = "forever"

    @property
    def days(self) -> int | None:
        """Retention length in days, or None for indefinite retention."""
        return _RETENTION_DAYS[self]

    @classmethod
    def from_days(cls, days: int | None) -> RetentionPeriod:
        """Return the period matching ``days`` (None → forever).

        Raises:
            ValueError: If ``days`` is not one of the supported lengths.
        """
        for period, period_days in _RETENTION_DAYS.items():
            if period_days == days:
                return period
        raise ValueError(f"Unsupported retention length: {days!r} days")


_RETENTION_DAYS: dict[RetentionPeriod, int | None] = {
    RetentionPeriod.weeks_2: 14,
    RetentionPeriod.month_1: 30,
    RetentionPeriod.months_3: 90,
    RetentionPeriod.months_6: 180,
    RetentionPeriod.year_1: 365,
    RetentionPeriod.years_2: 730,
    RetentionPeriod.forever: None,
}


# (min, max) number of times-of-day allowed per frequency
TIMES_PER_DAY_BOUNDS: dict[Frequency, tuple[int, int]] = {
    Frequency.daily: (1, 4),
    Frequency.twice_daily: (2, 2),
    Frequency.three_times_daily: (3, 3),
    Frequency.weekly: (1, 4),
    Frequency.custom: (1, 4),
    Frequency.as_needed: (0, 0),
}


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Subject:
    """A tracked item (a medicine).  Owned by an external repository."""

    id: UUID
    name: str


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleDefinition:
    """Recurrence rule for one subject.

    Construction enforces every invariant, so the evaluator can assume a
    valid schedule.  ``times_of_day`` is canonicalized (sorted, de-duplicated)
    and ``days_of_week`` is coerced to a frozenset before validation.

    Attributes:
        subject_id:    The tracked subject this schedule belongs to.
        subject_name:  Denormalized subject display name.
        frequency:     Recurrence variant.
        start_date:    First calendar day the schedule applies.
        times_of_day:  Local clock times a dose is due on a matching day.
        days_of_week:  Weekly only: ISO weekdays (Monday=1 … Sunday=7).
        interval_days: Custom only: every N days from start_date.
        active:        Inactive schedules produce no due slots.
        end_date:      Optional last calendar day (inclusive).
        notes:         Free text.
        id:            Schedule UUID.

    Raises:
        InvalidScheduleError: If any invariant is violated.
    """

    subject_id: UUID
    subject_name: str
    frequency: Frequency
    start_date: date
    times_of_day: tuple[time, ...] = ()
    days_of_week: frozenset[int] = frozenset()
    interval_days: int | None = None
    active: bool = True
    end_date: date | None = None
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "times_of_day", tuple(sorted(set(self.times_of_day))))
        object.__setattr__(self, "days_of_week", frozenset(self.days_of_week))
        self._validate()

    def _validate(self) -> None:
        low, high = TIMES_PER_DAY_BOUNDS[self.frequency]
        count = len(self.times_of_day)
        if not low <= count <= high:
            raise InvalidScheduleError(
                f"{self.frequency.value} schedule needs {low}–{high} times of day, got {count}"
            )
        if self.frequency is Frequency.weekly:
            if not self.days_of_week:
                raise InvalidScheduleError("weekly schedule requires at least one day of week")
            bad = sorted(d for d in self.days_of_week if not 1 <= d <= 7)
            if bad:
                raise InvalidScheduleError(f"days_of_week out of range 1..7: {bad}")
        if self.frequency is Frequency.custom:
            if self.interval_days is None or self.interval_days < 1:
                raise InvalidScheduleError(
                    f"custom schedule requires interval_days >= 1, got {self.interval_days!r}"
                )
        if self.end_date is not None and self.end_date < self.start_date:
            raise InvalidScheduleError(
                f"end_date {self.end_date} is before start_date {self.start_date}"
            )


@dataclass
class ScheduleDraft:
    """Lenient input for creating or editing a schedule.

    Anything may be missing or inconsistent; the coordinator normalizes a
    draft into a valid ScheduleDefinition instead of rejecting it.
    """

    subject_id: UUID
    subject_name: str | None = None
    frequency: Frequency = Frequency.daily
    times_of_day: list[time] = field(default_factory=list)
    days_of_week: list[int] | None = None
    interval_days: int | None = None
    active: bool = True
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Dose events and derived slots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DoseEvent:
    """A dose the user recorded (taken, skipped, or explicitly not taken).

    Attributes:
        subject_id:     Subject the dose belongs to.
        subject_name:   Subject name at record time.
        timestamp:      Local datetime of the dose.
        taken:          True if the dose was taken.
        skipped_reason: Present when the user deliberately skipped.
        notes:          Free text.
        id:             Dose UUID.
    """

    subject_id: UUID
    subject_name: str
    timestamp: datetime
    taken: bool = True
    skipped_reason: str | None = None
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def status(self) -> DoseStatus:
        if self.taken:
            return DoseStatus.taken
        if self.skipped_reason is not None:
            return DoseStatus.skipped
        return DoseStatus.missed


@dataclass(frozen=True, order=True)
class DueSlot:
    """A concrete (subject, timestamp) pair produced by evaluating a schedule."""

    scheduled_time: datetime
    subject_id: UUID
    source_schedule_id: UUID


@dataclass(frozen=True)
class ReconciledSlot:
    """A due slot together with its reconciled status."""

    slot: DueSlot
    status: SlotStatus
    dose_id: UUID | None = None

    @property
    def subject_id(self) -> UUID:
        return self.slot.subject_id

    @property
    def scheduled_time(self) -> datetime:
        return self.slot.scheduled_time

    @property
    def source_schedule_id(self) -> UUID:
        return self.slot.source_schedule_id


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HistoryRecord:
    """Append-only record of a dose outcome.  Pruned only in bulk by age."""

    subject_id: UUID
    subject_name: str
    scheduled_time: datetime
    recorded_time: datetime
    status: DoseStatus
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)
