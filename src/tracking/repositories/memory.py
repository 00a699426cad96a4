"""In-process repository implementations.

Used by the test suite and by the default application wiring when no
database is configured.  Data lives in plain dicts keyed by id and is lost
when the process exits.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable
from uuid import UUID

from src.tracking.base import DoseEvent, HistoryRecord, ScheduleDefinition, Subject
from src.tracking.repositories.base import (
    DoseEventRepository,
    HistoryRepository,
    ScheduleRepository,
    SubjectDirectory,
)

logger = logging.getLogger("adhera.tracking.repositories.memory")


class InMemorySubjectRepository(SubjectDirectory):
    """Subject store with synchronous helpers for seeding tests."""

    def __init__(self, subjects: Iterable[Subject] = ()) -> None:
        self._subjects: dict[UUID, Subject] = {s.id: s for s in subjects}

    def add(self, subject: Subject) -> None:
        self._subjects[subject.id] = subject

    def remove(self, subject_id: UUID) -> None:
        self._subjects.pop(subject_id, None)

    def clear(self) -> None:
        self._subjects.clear()

    async def fetch_all(self) -> list[Subject]:
        return list(self._subjects.values())

    async def fetch_by_id(self, subject_id: UUID) -> Subject | None:
        return self._subjects.get(subject_id)

    async def save(self, subject: Subject) -> None:
        self.add(subject)

    async def delete(self, subject_id: UUID) -> None:
        self.remove(subject_id)

    async def delete_all(self) -> None:
        self.clear()


class InMemoryScheduleRepository(ScheduleRepository):
    def __init__(self, schedules: Iterable[ScheduleDefinition] = ()) -> None:
        self._schedules: dict[UUID, ScheduleDefinition] = {s.id: s for s in schedules}

    async def fetch_all(self) -> list[ScheduleDefinition]:
        return list(self._schedules.values())

    async def save(self, schedule: ScheduleDefinition) -> None:
        self._schedules[schedule.id] = schedule

    async def delete(self, schedule_id: UUID) -> None:
        self._schedules.pop(schedule_id, None)

    async def delete_for_subject(self, subject_id: UUID) -> None:
        self._schedules = {
            k: s for k, s in self._schedules.items() if s.subject_id != subject_id
        }

    async def delete_all(self) -> None:
        self._schedules.clear()


class InMemoryDoseEventRepository(DoseEventRepository):
    def __init__(self, events: Iterable[DoseEvent] = ()) -> None:
        self._events: dict[UUID, DoseEvent] = {e.id: e for e in events}

    async def fetch_all(self) -> list[DoseEvent]:
        return sorted(self._events.values(), key=lambda e: e.timestamp)

    async def save(self, event: DoseEvent) -> None:
        self._events[event.id] = event

    async def delete(self, dose_id: UUID) -> None:
        self._events.pop(dose_id, None)

    async def delete_for_subject(self, subject_id: UUID) -> None:
        self._events = {k: e for k, e in self._events.items() if e.subject_id != subject_id}

    async def delete_all(self) -> None:
        self._events.clear()


class InMemoryHistoryRepository(HistoryRepository):
    def __init__(self, records: Iterable[HistoryRecord] = ()) -> None:
        self._records: list[HistoryRecord] = list(records)

    async def append(self, record: HistoryRecord) -> None:
        self._records.append(record)

    async def delete_before(self, cutoff: datetime) -> int:
        before = len(self._records)
        self._records = [r for r in self._records if r.recorded_time >= cutoff]
        return before - len(self._records)

    async def fetch_all(self) -> list[HistoryRecord]:
        return list(self._records)

    async def delete_for_subject(self, subject_id: UUID) -> None:
        self._records = [r for r in self._records if r.subject_id != subject_id]

    async def delete_all(self) -> None:
        self._records.clear()
