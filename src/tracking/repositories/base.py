"""Repository interfaces consumed by the tracking core.

Persistence is an external concern.  The coordinator talks to storage only
through these abstract classes; concrete implementations live next to this
module (``memory`` for tests and single-process use, ``postgres`` for
asyncpg-backed deployments).

Any exception raised by an implementation is wrapped by the coordinator in
``RepositoryFailure``; implementations do not need their own error types.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from src.tracking.base import DoseEvent, HistoryRecord, ScheduleDefinition, Subject


class SubjectRepository(ABC):
    """Read access to tracked subjects (display data and existence)."""

    @abstractmethod
    async def fetch_all(self) -> list[Subject]:
        """Return every known subject."""

    @abstractmethod
    async def fetch_by_id(self, subject_id: UUID) -> Subject | None:
        """Return one subject, or None if it does not exist."""


class SubjectDirectory(SubjectRepository):
    """A SubjectRepository the application itself can write to."""

    @abstractmethod
    async def save(self, subject: Subject) -> None:
        """Insert or replace a subject by id."""

    @abstractmethod
    async def delete(self, subject_id: UUID) -> None:
        """Remove a subject.  Deleting an unknown id is not an error."""

    @abstractmethod
    async def delete_all(self) -> None:
        """Remove every subject."""


class ScheduleRepository(ABC):
    """Storage for ScheduleDefinitions."""

    @abstractmethod
    async def fetch_all(self) -> list[ScheduleDefinition]:
        """Return every stored schedule."""

    @abstractmethod
    async def save(self, schedule: ScheduleDefinition) -> None:
        """Insert or replace a schedule by id."""

    @abstractmethod
    async def delete(self, schedule_id: UUID) -> None:
        """Remove a schedule.  Deleting an unknown id is not an error."""

    @abstractmethod
    async def delete_for_subject(self, subject_id: UUID) -> None:
        """Remove every schedule belonging to ``subject_id``."""

    @abstractmethod
    async def delete_all(self) -> None:
        """Remove every schedule."""


class DoseEventRepository(ABC):
    """Storage for recorded DoseEvents."""

    @abstractmethod
    async def fetch_all(self) -> list[DoseEvent]:
        """Return every stored dose event."""

    @abstractmethod
    async def save(self, event: DoseEvent) -> None:
        """Insert or replace a dose event by id."""

    @abstractmethod
    async def delete(self, dose_id: UUID) -> None:
        """Remove a dose event.  Deleting an unknown id is not an error."""

    @abstractmethod
    async def delete_for_subject(self, subject_id: UUID) -> None:
        """Remove every dose event belonging to ``subject_id``."""

    @abstractmethod
    async def delete_all(self) -> None:
        """Remove every dose event."""


class HistoryRepository(ABC):
    """Append-only storage for HistoryRecords."""

    @abstractmethod
    async def append(self, record: HistoryRecord) -> None:
        """Store a new record."""

    @abstractmethod
    async def delete_before(self, cutoff: datetime) -> int:
        """Remove records whose ``recorded_time`` is before ``cutoff``.

        Returns:
            Number of records removed.
        """

    @abstractmethod
    async def fetch_all(self) -> list[HistoryRecord]:
        """Return every stored record."""

    @abstractmethod
    async def delete_for_subject(self, subject_id: UUID) -> None:
        """Remove every record belonging to ``subject_id``."""

    @abstractmethod
    async def delete_all(self) -> None:
        """Remove every record."""
