"""Tests for the tracking coordinator: mutation pipeline, views and cascades."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, time, timedelta
from uuid import UUID, uuid4

import pytest

from src.tracking.analytics import CancellationToken
from src.tracking.base import (
    DoseEvent,
    DoseStatus,
    Frequency,
    HistoryRecord,
    RetentionPeriod,
    ScheduleDefinition,
    ScheduleDraft,
    SlotStatus,
)
from src.tracking.config_loader import TrackingConfig
from src.tracking.coordinator import TrackingCoordinator
from src.tracking.errors import ComputationCancelled, RepositoryFailure
from src.tracking.events import EventChannel, EventPayload, TrackingEvent
from src.tracking.repositories.memory import (
    InMemoryDoseEventRepository,
    InMemoryHistoryRepository,
    InMemoryScheduleRepository,
    InMemorySubjectRepository,
)
from src.tracking.tests.conftest import (
    LISINOPRIL,
    METFORMIN,
    TEST_DATE,
    TEST_NOW,
    FixedClock,
    make_dose,
    make_schedule,
)

YESTERDAY = TEST_DATE - timedelta(days=1)


def _draft(subject=METFORMIN, times=(time(9, 0),), **kwargs) -> ScheduleDraft:
    kwargs.setdefault("start_date", YESTERDAY)
    return ScheduleDraft(subject_id=subject.id, times_of_day=list(times), **kwargs)


class FlakyScheduleRepository(InMemoryScheduleRepository):
    """Fails ``save`` once ``saves_before_failure`` schedules have been stored."""

    def __init__(self, saves_before_failure: int = 0) -> None:
        super().__init__()
        self.saves_left = saves_before_failure

    async def save(self, schedule: ScheduleDefinition) -> None:
        if self.saves_left <= 0:
            raise RuntimeError("disk full")
        self.saves_left -= 1
        await super().save(schedule)


class FlakyDoseRepository(InMemoryDoseEventRepository):
    async def delete_for_subject(self, subject_id: UUID) -> None:
        raise ConnectionError("connection reset")


class BrokenSubjectRepository(InMemorySubjectRepository):
    async def fetch_all(self):
        raise ConnectionError("directory offline")


def _recorder(channel: EventChannel, event: TrackingEvent) -> list[EventPayload]:
    seen: list[EventPayload] = []
    channel.subscribe(event, seen.append)
    return seen


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_installs_repository_contents(
        self,
        coordinator: TrackingCoordinator,
        schedule_repo: InMemoryScheduleRepository,
        dose_repo: InMemoryDoseEventRepository,
    ) -> None:
        schedule = make_schedule()
        dose = make_dose(datetime(2026, 3, 1, 9, 0))
        await schedule_repo.save(schedule)
        await dose_repo.save(dose)

        snapshot = await coordinator.load()

        assert snapshot.schedules == (schedule,)
        assert snapshot.doses == (dose,)
        assert set(snapshot.subjects) == {METFORMIN.id, LISINOPRIL.id}

    @pytest.mark.asyncio
    async def test_snapshot_subjects_are_read_only(
        self, coordinator: TrackingCoordinator, subject_repo: InMemorySubjectRepository
    ) -> None:
        snapshot = await coordinator.load()

        with pytest.raises(TypeError):
            snapshot.subjects[LISINOPRIL.id] = METFORMIN  # type: ignore[index]

        subject_repo.remove(LISINOPRIL.id)
        await coordinator.refresh_subjects()
        assert LISINOPRIL.id in snapshot.subjects
        assert LISINOPRIL.id not in coordinator.snapshot.subjects

    @pytest.mark.asyncio
    async def test_subject_lookup_failure_keeps_cache(
        self, tracking_config: TrackingConfig, clock: FixedClock
    ) -> None:
        coordinator = TrackingCoordinator(
            BrokenSubjectRepository([METFORMIN]),
            InMemoryScheduleRepository([make_schedule()]),
            InMemoryDoseEventRepository(),
            InMemoryHistoryRepository(),
            config=tracking_config,
            clock=clock,
        )
        snapshot = await coordinator.load()
        assert len(snapshot.schedules) == 1
        assert snapshot.subjects == {}

    @pytest.mark.asyncio
    async def test_refresh_subjects(
        self, coordinator: TrackingCoordinator, subject_repo: InMemorySubjectRepository
    ) -> None:
        await coordinator.load()
        subject_repo.remove(LISINOPRIL.id)
        await coordinator.refresh_subjects()
        assert LISINOPRIL.id not in coordinator.snapshot.subjects


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


class TestScheduleMutations:
    @pytest.mark.asyncio
    async def test_add_then_today_reflects_slot(
        self, coordinator: TrackingCoordinator, clock: FixedClock
    ) -> None:
        result = await coordinator.add_schedule(_draft())

        (slot,) = coordinator.today_due_slots()
        assert slot.subject == METFORMIN
        assert slot.scheduled_time == datetime(2026, 3, 2, 9, 0)
        assert slot.status is SlotStatus.missed
        assert slot.source_schedule_id == result.schedule.id

        clock.set(datetime(2026, 3, 2, 8, 0))
        assert [s.status for s in coordinator.today_due_slots()] == [SlotStatus.pending]

    @pytest.mark.asyncio
    async def test_add_normalizes_and_persists(
        self,
        coordinator: TrackingCoordinator,
        schedule_repo: InMemoryScheduleRepository,
    ) -> None:
        result = await coordinator.add_schedule(
            ScheduleDraft(subject_id=METFORMIN.id, frequency=Frequency.weekly)
        )

        assert result.was_normalized
        assert result.schedule.subject_name == METFORMIN.name
        assert result.schedule.days_of_week == frozenset({1})
        assert result.schedule.start_date == TEST_DATE
        assert await schedule_repo.fetch_all() == [result.schedule]
        assert coordinator.schedules == (result.schedule,)

    @pytest.mark.asyncio
    async def test_add_publishes_data_changed(
        self, coordinator: TrackingCoordinator, channel: EventChannel
    ) -> None:
        seen = _recorder(channel, TrackingEvent.data_changed)
        await coordinator.add_schedule(_draft())
        assert [p.reason for p in seen] == ["add_schedule"]
        assert seen[0].subject_id == METFORMIN.id

    @pytest.mark.asyncio
    async def test_future_schedule_not_due_today(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft(start_date=TEST_DATE + timedelta(days=1)))
        assert coordinator.today_due_slots() == []

    @pytest.mark.asyncio
    async def test_update_schedule(self, coordinator: TrackingCoordinator) -> None:
        added = await coordinator.add_schedule(_draft())
        updated = await coordinator.update_schedule(
            added.schedule.id, _draft(times=(time(7, 0), time(19, 0)))
        )

        assert updated is not None
        assert updated.schedule.id == added.schedule.id
        assert len(coordinator.schedules) == 1
        assert [s.scheduled_time.hour for s in coordinator.today_due_slots()] == [7, 19]

    @pytest.mark.asyncio
    async def test_update_unknown_is_noop(self, coordinator: TrackingCoordinator) -> None:
        before = coordinator.snapshot
        assert await coordinator.update_schedule(uuid4(), _draft()) is None
        assert coordinator.snapshot is before

    @pytest.mark.asyncio
    async def test_deactivated_schedule_leaves_views(self, coordinator: TrackingCoordinator) -> None:
        added = await coordinator.add_schedule(_draft())
        await coordinator.update_schedule(added.schedule.id, _draft(active=False))
        assert coordinator.today_due_slots() == []
        assert coordinator.upcoming_due_slots() == []

    @pytest.mark.asyncio
    async def test_delete_cascades_subject_doses(
        self,
        coordinator: TrackingCoordinator,
        dose_repo: InMemoryDoseEventRepository,
    ) -> None:
        added = await coordinator.add_schedule(_draft())
        await coordinator.add_schedule(_draft(subject=LISINOPRIL))
        await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 0)))
        await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 0), subject=LISINOPRIL))

        assert await coordinator.delete_schedule(added.schedule.id) is True

        assert [s.subject_id for s in coordinator.schedules] == [LISINOPRIL.id]
        assert {d.subject_id for d in coordinator.doses} == {LISINOPRIL.id}
        assert {d.subject_id for d in await dose_repo.fetch_all()} == {LISINOPRIL.id}

    @pytest.mark.asyncio
    async def test_delete_unknown_returns_false(self, coordinator: TrackingCoordinator) -> None:
        assert await coordinator.delete_schedule(uuid4()) is False

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_serialized(self, coordinator: TrackingCoordinator) -> None:
        await asyncio.gather(*(coordinator.add_schedule(_draft()) for _ in range(5)))
        assert len(coordinator.schedules) == 5
        assert coordinator.snapshot.version == 5


class TestBulkAdd:
    @pytest.mark.asyncio
    async def test_bulk_add_single_swap(
        self, coordinator: TrackingCoordinator, channel: EventChannel
    ) -> None:
        seen = _recorder(channel, TrackingEvent.data_changed)
        results = await coordinator.bulk_add_schedules(
            [_draft(), _draft(subject=LISINOPRIL), _draft(times=())]
        )

        assert len(results) == 3
        assert len(coordinator.schedules) == 3
        assert [p.reason for p in seen] == ["bulk_add_schedules"]
        assert results[2].was_normalized

    @pytest.mark.asyncio
    async def test_bulk_add_partial_failure(
        self,
        subject_repo: InMemorySubjectRepository,
        tracking_config: TrackingConfig,
        clock: FixedClock,
    ) -> None:
        schedules = FlakyScheduleRepository(saves_before_failure=2)
        coordinator = TrackingCoordinator(
            subject_repo,
            schedules,
            InMemoryDoseEventRepository(),
            InMemoryHistoryRepository(),
            config=tracking_config,
            clock=clock,
        )

        with pytest.raises(RepositoryFailure):
            await coordinator.bulk_add_schedules([_draft(), _draft(), _draft()])

        assert len(coordinator.schedules) == 2
        assert len(await schedules.fetch_all()) == 2


# ---------------------------------------------------------------------------
# Doses and history
# ---------------------------------------------------------------------------


class TestDoseMutations:
    @pytest.mark.asyncio
    async def test_recorded_dose_marks_slot_taken(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft())
        dose = await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 10)))

        (slot,) = coordinator.today_due_slots()
        assert slot.status is SlotStatus.taken
        assert slot.dose_id == dose.id

    @pytest.mark.asyncio
    async def test_weekly_monday_taken_late(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(
            _draft(
                times=(time(8, 0),),
                frequency=Frequency.weekly,
                days_of_week=[1],
                start_date=TEST_DATE,
            )
        )
        await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 8, 10)))
        assert [s.status for s in coordinator.today_due_slots()] == [SlotStatus.taken]

    @pytest.mark.asyncio
    async def test_history_uses_matched_slot_time(
        self,
        coordinator: TrackingCoordinator,
        history_repo: InMemoryHistoryRepository,
    ) -> None:
        await coordinator.add_schedule(_draft())
        await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 10)))
        await coordinator.record_dose(
            make_dose(datetime(2026, 3, 2, 11, 0), taken=False, skipped_reason="nausea")
        )

        matched, unmatched = await history_repo.fetch_all()
        assert matched.scheduled_time == datetime(2026, 3, 2, 9, 0)
        assert matched.recorded_time == TEST_NOW
        assert matched.status is DoseStatus.taken
        assert unmatched.scheduled_time == datetime(2026, 3, 2, 11, 0)
        assert unmatched.status is DoseStatus.skipped

    @pytest.mark.asyncio
    async def test_history_matches_slot_across_midnight(
        self,
        coordinator: TrackingCoordinator,
        history_repo: InMemoryHistoryRepository,
    ) -> None:
        await coordinator.add_schedule(_draft(times=(time(23, 50),)))
        dose = await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 0, 10)))

        (record,) = await history_repo.fetch_all()
        assert record.scheduled_time == datetime(2026, 3, 1, 23, 50)

        (slot,) = coordinator._reconciler.reconcile_day(
            coordinator.schedules, coordinator.doses, YESTERDAY, TEST_NOW
        )
        assert slot.status is SlotStatus.taken
        assert slot.dose_id == dose.id

    @pytest.mark.asyncio
    async def test_blank_subject_name_filled_from_cache(
        self, coordinator: TrackingCoordinator
    ) -> None:
        await coordinator.load()
        dose = await coordinator.record_dose(
            DoseEvent(subject_id=METFORMIN.id, subject_name="", timestamp=TEST_NOW)
        )
        assert dose.subject_name == METFORMIN.name

    @pytest.mark.asyncio
    async def test_update_dose(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft())
        dose = await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 0)))

        updated = await coordinator.update_dose(replace(dose, taken=False, skipped_reason="ill"))

        assert updated is not None
        assert coordinator.dose_by_id(dose.id).status is DoseStatus.skipped
        assert [s.status for s in coordinator.today_due_slots()] == [SlotStatus.skipped]

    @pytest.mark.asyncio
    async def test_update_unknown_dose(self, coordinator: TrackingCoordinator) -> None:
        assert await coordinator.update_dose(make_dose(TEST_NOW)) is None

    @pytest.mark.asyncio
    async def test_delete_dose(
        self, coordinator: TrackingCoordinator, dose_repo: InMemoryDoseEventRepository
    ) -> None:
        dose = await coordinator.record_dose(make_dose(TEST_NOW))
        assert await coordinator.delete_dose(dose.id) is True
        assert coordinator.doses == ()
        assert await dose_repo.fetch_all() == []
        assert await coordinator.delete_dose(dose.id) is False

    @pytest.mark.asyncio
    async def test_record_dose_applies_retention(
        self,
        coordinator: TrackingCoordinator,
        history_repo: InMemoryHistoryRepository,
    ) -> None:
        stale = TEST_NOW - timedelta(days=200)
        await history_repo.append(
            HistoryRecord(
                subject_id=METFORMIN.id,
                subject_name=METFORMIN.name,
                scheduled_time=stale,
                recorded_time=stale,
                status=DoseStatus.taken,
            )
        )

        await coordinator.record_dose(make_dose(TEST_NOW))

        records = await history_repo.fetch_all()
        assert [r.recorded_time for r in records] == [TEST_NOW]


# ---------------------------------------------------------------------------
# Subject cascades
# ---------------------------------------------------------------------------


class TestSubjectCascades:
    async def _populate(self, coordinator: TrackingCoordinator) -> None:
        for subject in (METFORMIN, LISINOPRIL):
            await coordinator.add_schedule(_draft(subject=subject))
            await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 0), subject=subject))

    @pytest.mark.asyncio
    async def test_subject_deleted_cascades(
        self,
        coordinator: TrackingCoordinator,
        schedule_repo: InMemoryScheduleRepository,
        dose_repo: InMemoryDoseEventRepository,
        history_repo: InMemoryHistoryRepository,
        channel: EventChannel,
    ) -> None:
        await self._populate(coordinator)
        seen = _recorder(channel, TrackingEvent.subject_deleted)

        await coordinator.on_subject_deleted(METFORMIN.id)

        assert all(s.subject_id != METFORMIN.id for s in await schedule_repo.fetch_all())
        assert all(d.subject_id != METFORMIN.id for d in await dose_repo.fetch_all())
        assert all(r.subject_id != METFORMIN.id for r in await history_repo.fetch_all())
        assert {s.subject.id for s in coordinator.today_due_slots()} == {LISINOPRIL.id}
        assert await coordinator.verify_cleanup(METFORMIN.id)
        assert not await coordinator.verify_cleanup(LISINOPRIL.id)
        assert [p.subject_id for p in seen] == [METFORMIN.id]

    @pytest.mark.asyncio
    async def test_all_subjects_deleted(
        self, coordinator: TrackingCoordinator, channel: EventChannel
    ) -> None:
        await self._populate(coordinator)
        seen = _recorder(channel, TrackingEvent.all_subjects_deleted)

        await coordinator.on_all_subjects_deleted()

        assert coordinator.schedules == ()
        assert coordinator.doses == ()
        assert coordinator.today_due_slots() == []
        assert await coordinator.verify_cleanup()
        assert len(seen) == 1


# ---------------------------------------------------------------------------
# Repository failures
# ---------------------------------------------------------------------------


class TestRepositoryFailures:
    @pytest.mark.asyncio
    async def test_failed_save_leaves_snapshot(
        self,
        subject_repo: InMemorySubjectRepository,
        tracking_config: TrackingConfig,
        clock: FixedClock,
        channel: EventChannel,
    ) -> None:
        coordinator = TrackingCoordinator(
            subject_repo,
            FlakyScheduleRepository(saves_before_failure=0),
            InMemoryDoseEventRepository(),
            InMemoryHistoryRepository(),
            config=tracking_config,
            clock=clock,
            events=channel,
        )
        seen = _recorder(channel, TrackingEvent.data_changed)
        before = coordinator.snapshot

        with pytest.raises(RepositoryFailure) as excinfo:
            await coordinator.add_schedule(_draft())

        assert coordinator.snapshot is before
        assert excinfo.value.operation == "save schedule"
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert seen == []

    @pytest.mark.asyncio
    async def test_failed_dose_cascade_keeps_doses(
        self,
        subject_repo: InMemorySubjectRepository,
        tracking_config: TrackingConfig,
        clock: FixedClock,
    ) -> None:
        schedules = InMemoryScheduleRepository()
        coordinator = TrackingCoordinator(
            subject_repo,
            schedules,
            FlakyDoseRepository(),
            InMemoryHistoryRepository(),
            config=tracking_config,
            clock=clock,
        )
        added = await coordinator.add_schedule(_draft())
        await coordinator.record_dose(make_dose(TEST_NOW))

        with pytest.raises(RepositoryFailure, match="delete dose events"):
            await coordinator.delete_schedule(added.schedule.id)

        # The schedule delete was persisted; the doses were not touched.
        assert coordinator.schedules == ()
        assert await schedules.fetch_all() == []
        assert len(coordinator.doses) == 1


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class TestViews:
    @pytest.mark.asyncio
    async def test_unresolved_subject_dropped(self, coordinator: TrackingCoordinator) -> None:
        ghost = uuid4()
        await coordinator.add_schedule(_draft())
        await coordinator.add_schedule(ScheduleDraft(subject_id=ghost, times_of_day=[time(10, 0)]))

        slots = coordinator.today_due_slots()

        assert [s.subject.id for s in slots] == [METFORMIN.id]
        assert coordinator.last_view_diagnostics.view == "today"
        assert coordinator.last_view_diagnostics.dropped == 1

    @pytest.mark.asyncio
    async def test_upcoming_sorted_and_limited(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft())
        await coordinator.add_schedule(_draft(subject=LISINOPRIL, times=(time(21, 0),)))

        upcoming = coordinator.upcoming_due_slots()
        assert [(u.subject.id, u.scheduled_time) for u in upcoming] == [
            (LISINOPRIL.id, datetime(2026, 3, 2, 21, 0)),
            (METFORMIN.id, datetime(2026, 3, 3, 9, 0)),
        ]
        assert [u.subject.id for u in coordinator.upcoming_due_slots(limit=1)] == [LISINOPRIL.id]

    @pytest.mark.asyncio
    async def test_upcoming_default_limit(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.bulk_add_schedules([_draft() for _ in range(7)])
        assert len(coordinator.upcoming_due_slots()) == 5

    @pytest.mark.asyncio
    async def test_upcoming_skips_as_needed(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft(frequency=Frequency.as_needed, times=()))
        assert coordinator.upcoming_due_slots() == []
        assert coordinator.today_due_slots() == []


# ---------------------------------------------------------------------------
# Analytics and queries
# ---------------------------------------------------------------------------


class TestAnalyticsAndQueries:
    @pytest.mark.asyncio
    async def test_rate_and_streak(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft())
        await coordinator.record_dose(make_dose(datetime(2026, 3, 1, 9, 0)))
        await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 0)))

        # Two days expected since the schedule started yesterday
        assert coordinator.adherence_rate(METFORMIN.id, window_days=7) == 100.0
        assert coordinator.current_streak(METFORMIN.id) == 2
        summary = coordinator.adherence_summary(METFORMIN.id, window_days=7)
        assert summary.expected_doses == 2
        assert summary.taken_doses == 2

    @pytest.mark.asyncio
    async def test_rate_zero_without_schedules(self, coordinator: TrackingCoordinator) -> None:
        assert coordinator.adherence_rate(LISINOPRIL.id) == 0.0

    @pytest.mark.asyncio
    async def test_report_covers_scheduled_subjects(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft())
        await coordinator.add_schedule(_draft(subject=LISINOPRIL))

        report = await coordinator.adherence_report(window_days=7)

        assert {s.subject_id for s in report} == {METFORMIN.id, LISINOPRIL.id}

    @pytest.mark.asyncio
    async def test_report_cancelled(self, coordinator: TrackingCoordinator) -> None:
        await coordinator.add_schedule(_draft())
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ComputationCancelled):
            await coordinator.adherence_report(cancel=token)

    @pytest.mark.asyncio
    async def test_query_helpers(self, coordinator: TrackingCoordinator) -> None:
        active = await coordinator.add_schedule(_draft())
        await coordinator.add_schedule(_draft(active=False))
        older = await coordinator.record_dose(make_dose(datetime(2026, 3, 1, 9, 0)))
        newer = await coordinator.record_dose(make_dose(datetime(2026, 3, 2, 9, 0)))

        assert coordinator.schedules_for_subject(METFORMIN.id) == [active.schedule]
        assert len(coordinator.schedules_for_subject(METFORMIN.id, include_inactive=True)) == 2
        assert coordinator.has_schedule(METFORMIN.id)
        assert not coordinator.has_schedule(LISINOPRIL.id)
        assert coordinator.subjects_with_schedules() == {METFORMIN.id}
        assert coordinator.doses_for_subject(METFORMIN.id, datetime(2026, 2, 1)) == [newer, older]
        assert coordinator.doses_for_subject(
            METFORMIN.id, datetime(2026, 3, 2), datetime(2026, 3, 3)
        ) == [newer]

        history = await coordinator.history_for_subject(METFORMIN.id)
        assert len(history) == 2
        assert len(await coordinator.recent_history(days=7)) == 2


class TestRetention:
    @pytest.mark.asyncio
    async def test_default_period_from_config(self, coordinator: TrackingCoordinator) -> None:
        assert coordinator.retention_period is RetentionPeriod.months_6

    @pytest.mark.asyncio
    async def test_shorter_period_prunes(
        self,
        coordinator: TrackingCoordinator,
        history_repo: InMemoryHistoryRepository,
        channel: EventChannel,
    ) -> None:
        seen = _recorder(channel, TrackingEvent.history_pruned)
        old = TEST_NOW - timedelta(days=60)
        await history_repo.append(
            HistoryRecord(
                subject_id=METFORMIN.id,
                subject_name=METFORMIN.name,
                scheduled_time=old,
                recorded_time=old,
                status=DoseStatus.taken,
            )
        )

        assert await coordinator.apply_retention() == 0
        assert await coordinator.set_retention_period(RetentionPeriod.month_1) == 1
        assert coordinator.retention_period is RetentionPeriod.month_1
        assert await history_repo.fetch_all() == []
        assert [p.extra["removed"] for p in seen] == [1]
