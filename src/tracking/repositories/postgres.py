"""PostgreSQL repositories backed by an asyncpg pool.

Tables are created on demand by ``ensure_schema``.  Times of day are stored
as ``TIME[]``, weekdays as ``SMALLINT[]``; all timestamps are naive local
``TIMESTAMP`` values, matching the core's local-calendar model.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

import asyncpg

from src.services.database import affected_rows, execute, fetch, fetchrow, transaction
from src.tracking.base import (
    DoseEvent,
    DoseStatus,
    Frequency,
    HistoryRecord,
    ScheduleDefinition,
    Subject,
)
from src.tracking.repositories.base import (
    DoseEventRepository,
    HistoryRepository,
    ScheduleRepository,
    SubjectDirectory,
)

logger = logging.getLogger("adhera.tracking.repositories.postgres")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS subjects (
    subject_id   UUID PRIMARY KEY,
    name         TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schedules (
    schedule_id   UUID PRIMARY KEY,
    subject_id    UUID NOT NULL,
    subject_name  TEXT NOT NULL,
    frequency     TEXT NOT NULL,
    times_of_day  TIME[] NOT NULL DEFAULT '{}',
    days_of_week  SMALLINT[] NOT NULL DEFAULT '{}',
    interval_days INTEGER,
    active        BOOLEAN NOT NULL DEFAULT TRUE,
    start_date    DATE NOT NULL,
    end_date      DATE,
    notes         TEXT
);
CREATE INDEX IF NOT EXISTS schedules_subject_idx ON schedules (subject_id);

CREATE TABLE IF NOT EXISTS dose_events (
    dose_id        UUID PRIMARY KEY,
    subject_id     UUID NOT NULL,
    subject_name   TEXT NOT NULL,
    taken_at       TIMESTAMP NOT NULL,
    taken          BOOLEAN NOT NULL,
    skipped_reason TEXT,
    notes          TEXT
);
CREATE INDEX IF NOT EXISTS dose_events_subject_idx ON dose_events (subject_id, taken_at);

CREATE TABLE IF NOT EXISTS history_records (
    record_id      UUID PRIMARY KEY,
    subject_id     UUID NOT NULL,
    subject_name   TEXT NOT NULL,
    scheduled_time TIMESTAMP NOT NULL,
    recorded_time  TIMESTAMP NOT NULL,
    status         TEXT NOT NULL,
    notes          TEXT
);
CREATE INDEX IF NOT EXISTS history_recorded_idx ON history_records (recorded_time);
"""


async def ensure_schema(pool: asyncpg.Pool) -> None:
    """Create the tracking tables if they do not exist."""
    async with transaction(pool) as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("Tracking schema ensured")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _schedule_from_row(row: asyncpg.Record) -> ScheduleDefinition:
    return ScheduleDefinition(
        id=row["schedule_id"],
        subject_id=row["subject_id"],
        subject_name=row["subject_name"],
        frequency=Frequency(row["frequency"]),
        start_date=row["start_date"],
        times_of_day=tuple(row["times_of_day"] or ()),
        days_of_week=frozenset(row["days_of_week"] or ()),
        interval_days=row["interval_days"],
        active=row["active"],
        end_date=row["end_date"],
        notes=row["notes"],
    )


def _dose_from_row(row: asyncpg.Record) -> DoseEvent:
    return DoseEvent(
        id=row["dose_id"],
        subject_id=row["subject_id"],
        subject_name=row["subject_name"],
        timestamp=row["taken_at"],
        taken=row["taken"],
        skipped_reason=row["skipped_reason"],
        notes=row["notes"],
    )


def _history_from_row(row: asyncpg.Record) -> HistoryRecord:
    return HistoryRecord(
        id=row["record_id"],
        subject_id=row["subject_id"],
        subject_name=row["subject_name"],
        scheduled_time=row["scheduled_time"],
        recorded_time=row["recorded_time"],
        status=DoseStatus(row["status"]),
        notes=row["notes"],
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class PostgresSubjectRepository(SubjectDirectory):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def fetch_all(self) -> list[Subject]:
        rows = await fetch(self._pool, "SELECT subject_id, name FROM subjects ORDER BY name")
        return [Subject(id=r["subject_id"], name=r["name"]) for r in rows]

    async def fetch_by_id(self, subject_id: UUID) -> Subject | None:
        row = await fetchrow(
            self._pool,
            "SELECT subject_id, name FROM subjects WHERE subject_id = $1",
            subject_id,
        )
        if not row:
            return None
        return Subject(id=row["subject_id"], name=row["name"])

    async def save(self, subject: Subject) -> None:
        await execute(
            self._pool,
            """
            INSERT INTO subjects (subject_id, name) VALUES ($1, $2)
            ON CONFLICT (subject_id) DO UPDATE SET name = EXCLUDED.name
            """,
            subject.id,
            subject.name,
        )

    async def delete(self, subject_id: UUID) -> None:
        await execute(self._pool, "DELETE FROM subjects WHERE subject_id = $1", subject_id)

    async def delete_all(self) -> None:
        await execute(self._pool, "DELETE FROM subjects")


class PostgresScheduleRepository(ScheduleRepository):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def fetch_all(self) -> list[ScheduleDefinition]:
        rows = await fetch(self._pool, "SELECT * FROM schedules ORDER BY start_date, schedule_id")
        return [_schedule_from_row(r) for r in rows]

    async def save(self, schedule: ScheduleDefinition) -> None:
        await execute(
            self._pool,
            """
            INSERT INTO schedules (
                schedule_id, subject_id, subject_name, frequency, times_of_day,
                days_of_week, interval_days, active, start_date, end_date, notes
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            ON CONFLICT (schedule_id) DO UPDATE SET
                subject_id = EXCLUDED.subject_id,
                subject_name = EXCLUDED.subject_name,
                frequency = EXCLUDED.frequency,
                times_of_day = EXCLUDED.times_of_day,
                days_of_week = EXCLUDED.days_of_week,
                interval_days = EXCLUDED.interval_days,
                active = EXCLUDED.active,
                start_date = EXCLUDED.start_date,
                end_date = EXCLUDED.end_date,
                notes = EXCLUDED.notes
            """,
            schedule.id,
            schedule.subject_id,
            schedule.subject_name,
            schedule.frequency.value,
            list(schedule.times_of_day),
            sorted(schedule.days_of_week),
            schedule.interval_days,
            schedule.active,
            schedule.start_date,
            schedule.end_date,
            schedule.notes,
        )

    async def delete(self, schedule_id: UUID) -> None:
        await execute(self._pool, "DELETE FROM schedules WHERE schedule_id = $1", schedule_id)

    async def delete_for_subject(self, subject_id: UUID) -> None:
        status = await execute(
            self._pool, "DELETE FROM schedules WHERE subject_id = $1", subject_id
        )
        logger.debug("Deleted %d schedule row(s) for %s", affected_rows(status), subject_id)

    async def delete_all(self) -> None:
        await execute(self._pool, "DELETE FROM schedules")


class PostgresDoseEventRepository(DoseEventRepository):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def fetch_all(self) -> list[DoseEvent]:
        rows = await fetch(self._pool, "SELECT * FROM dose_events ORDER BY taken_at, dose_id")
        return [_dose_from_row(r) for r in rows]

    async def save(self, event: DoseEvent) -> None:
        await execute(
            self._pool,
            """
            INSERT INTO dose_events (
                dose_id, subject_id, subject_name, taken_at, taken, skipped_reason, notes
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (dose_id) DO UPDATE SET
                subject_id = EXCLUDED.subject_id,
                subject_name = EXCLUDED.subject_name,
                taken_at = EXCLUDED.taken_at,
                taken = EXCLUDED.taken,
                skipped_reason = EXCLUDED.skipped_reason,
                notes = EXCLUDED.notes
            """,
            event.id,
            event.subject_id,
            event.subject_name,
            event.timestamp,
            event.taken,
            event.skipped_reason,
            event.notes,
        )

    async def delete(self, dose_id: UUID) -> None:
        await execute(self._pool, "DELETE FROM dose_events WHERE dose_id = $1", dose_id)

    async def delete_for_subject(self, subject_id: UUID) -> None:
        status = await execute(
            self._pool, "DELETE FROM dose_events WHERE subject_id = $1", subject_id
        )
        logger.debug("Deleted %d dose row(s) for %s", affected_rows(status), subject_id)

    async def delete_all(self) -> None:
        await execute(self._pool, "DELETE FROM dose_events")


class PostgresHistoryRepository(HistoryRepository):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def append(self, record: HistoryRecord) -> None:
        await execute(
            self._pool,
            """
            INSERT INTO history_records (
                record_id, subject_id, subject_name, scheduled_time,
                recorded_time, status, notes
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            record.id,
            record.subject_id,
            record.subject_name,
            record.scheduled_time,
            record.recorded_time,
            record.status.value,
            record.notes,
        )

    async def delete_before(self, cutoff: datetime) -> int:
        status = await execute(
            self._pool, "DELETE FROM history_records WHERE recorded_time < $1", cutoff
        )
        return affected_rows(status)

    async def fetch_all(self) -> list[HistoryRecord]:
        rows = await fetch(self._pool, "SELECT * FROM history_records ORDER BY recorded_time")
        return [_history_from_row(r) for r in rows]

    async def delete_for_subject(self, subject_id: UUID) -> None:
        await execute(
            self._pool, "DELETE FROM history_records WHERE subject_id = $1", subject_id
        )

    async def delete_all(self) -> None:
        await execute(self._pool, "DELETE FROM history_records")
