"""Pydantic models for the tracking API: subjects, schedules, doses,
due-slot views, adherence analytics and history."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time

from pydantic import Field, field_validator

from src.models.base import AdheraBase, to_local_naive
from src.tracking.base import (
    DoseStatus,
    Frequency,
    RetentionPeriod,
    ScheduleDefinition,
    ScheduleDraft,
    SlotStatus,
)
from src.tracking.coordinator import TodaySlotView, UpcomingSlotView
from src.tracking.validation import NormalizationResult


# ---------- Subjects ----------

class SubjectCreate(AdheraBase):
    id: uuid.UUID | None = None
    name: str = Field(min_length=1)


class SubjectRead(AdheraBase):
    id: uuid.UUID
    name: str


# ---------- Schedules ----------

class ScheduleBase(AdheraBase):
    subject_id: uuid.UUID
    subject_name: str | None = None
    frequency: Frequency = Frequency.daily
    times_of_day: list[time] = Field(default_factory=list)
    days_of_week: list[int] | None = None  # ISO weekdays, Monday = 1
    interval_days: int | None = None
    active: bool = True
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None


class ScheduleCreate(ScheduleBase):
    def to_draft(self) -> ScheduleDraft:
        return ScheduleDraft(**self.model_dump())


# An explicit null clears these on PATCH; a null for any other field keeps the
# current value. Cleared lists are refilled with defaults by the normalizer.
NULLABLE_SCHEDULE_FIELDS = {"subject_name", "interval_days", "end_date", "notes"}
LIST_SCHEDULE_FIELDS = {"times_of_day", "days_of_week"}


class ScheduleUpdate(AdheraBase):
    subject_name: str | None = None
    frequency: Frequency | None = None
    times_of_day: list[time] | None = None
    days_of_week: list[int] | None = None
    interval_days: int | None = None
    active: bool | None = None
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None

    def merge_into(self, current: ScheduleDefinition) -> ScheduleDraft:
        """Overlay the fields set on this patch onto an existing schedule."""
        draft = ScheduleDraft(
            subject_id=current.subject_id,
            subject_name=current.subject_name,
            frequency=current.frequency,
            times_of_day=list(current.times_of_day),
            days_of_week=sorted(current.days_of_week),
            interval_days=current.interval_days,
            active=current.active,
            start_date=current.start_date,
            end_date=current.end_date,
            notes=current.notes,
        )
        for key, value in self.model_dump(exclude_unset=True).items():
            if value is None:
                if key in LIST_SCHEDULE_FIELDS:
                    value = []
                elif key not in NULLABLE_SCHEDULE_FIELDS:
                    continue
            setattr(draft, key, value)
        return draft


class ScheduleRead(AdheraBase):
    id: uuid.UUID
    subject_id: uuid.UUID
    subject_name: str
    frequency: Frequency
    times_of_day: list[time]
    days_of_week: list[int]
    interval_days: int | None = None
    active: bool
    start_date: date
    end_date: date | None = None
    notes: str | None = None

    @classmethod
    def from_domain(cls, schedule: ScheduleDefinition) -> ScheduleRead:
        return cls(
            id=schedule.id,
            subject_id=schedule.subject_id,
            subject_name=schedule.subject_name,
            frequency=schedule.frequency,
            times_of_day=list(schedule.times_of_day),
            days_of_week=sorted(schedule.days_of_week),
            interval_days=schedule.interval_days,
            active=schedule.active,
            start_date=schedule.start_date,
            end_date=schedule.end_date,
            notes=schedule.notes,
        )


class ScheduleWriteResult(AdheraBase):
    """A stored schedule plus the corrections applied while normalizing it."""

    schedule: ScheduleRead
    corrections: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: NormalizationResult) -> ScheduleWriteResult:
        return cls(
            schedule=ScheduleRead.from_domain(result.schedule),
            corrections=list(result.corrections),
        )


class BulkScheduleCreate(AdheraBase):
    schedules: list[ScheduleCreate] = Field(min_length=1)


# ---------- Doses ----------

class DoseCreate(AdheraBase):
    subject_id: uuid.UUID
    subject_name: str = ""
    timestamp: datetime
    taken: bool = True
    skipped_reason: str | None = None
    notes: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _local_timestamp(cls, value: datetime) -> datetime:
        return to_local_naive(value)


class DoseUpdate(AdheraBase):
    timestamp: datetime | None = None
    taken: bool | None = None
    skipped_reason: str | None = None
    notes: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _local_timestamp(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value) if value is not None else None


class DoseRead(AdheraBase):
    id: uuid.UUID
    subject_id: uuid.UUID
    subject_name: str
    timestamp: datetime
    taken: bool
    status: DoseStatus
    skipped_reason: str | None = None
    notes: str | None = None


# ---------- Due-slot views ----------

class DueSlotRead(AdheraBase):
    subject_id: uuid.UUID
    subject_name: str
    scheduled_time: datetime
    status: SlotStatus
    source_schedule_id: uuid.UUID
    dose_id: uuid.UUID | None = None

    @classmethod
    def from_view(cls, view: TodaySlotView) -> DueSlotRead:
        return cls(
            subject_id=view.subject.id,
            subject_name=view.subject.name,
            scheduled_time=view.scheduled_time,
            status=view.status,
            source_schedule_id=view.source_schedule_id,
            dose_id=view.dose_id,
        )


class UpcomingSlotRead(AdheraBase):
    subject_id: uuid.UUID
    subject_name: str
    scheduled_time: datetime
    source_schedule_id: uuid.UUID

    @classmethod
    def from_view(cls, view: UpcomingSlotView) -> UpcomingSlotRead:
        return cls(
            subject_id=view.subject.id,
            subject_name=view.subject.name,
            scheduled_time=view.scheduled_time,
            source_schedule_id=view.source_schedule_id,
        )


# ---------- Analytics ----------

class AdherenceRead(AdheraBase):
    subject_id: uuid.UUID
    window_days: int
    adherence_rate: float = Field(ge=0, le=100)


class StreakRead(AdheraBase):
    subject_id: uuid.UUID
    current_streak: int = Field(ge=0)


class SummaryRead(AdheraBase):
    subject_id: uuid.UUID
    window_days: int
    adherence_rate: float
    current_streak: int
    expected_doses: int
    taken_doses: int
    skipped_doses: int
    missed_slots: int


# ---------- History & retention ----------

class HistoryRecordRead(AdheraBase):
    id: uuid.UUID
    subject_id: uuid.UUID
    subject_name: str
    scheduled_time: datetime
    recorded_time: datetime
    status: DoseStatus
    notes: str | None = None


class RetentionRead(AdheraBase):
    period: RetentionPeriod
    days: int | None = None  # None = kept forever


class RetentionUpdate(AdheraBase):
    period: RetentionPeriod


class RetentionApplied(AdheraBase):
    period: RetentionPeriod
    removed: int
