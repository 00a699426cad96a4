"""Tracking coordinator — owns schedules and dose events, serves derived views.

Every mutation goes through one pipeline::

    validate → normalize → persist (repositories) → swap snapshot → publish event

Mutations are serialized by an ``asyncio.Lock``.  The in-memory state is a
single frozen ``TrackingSnapshot``; a mutation builds a new snapshot and
installs it with one assignment, so readers (which never lock) always see a
complete state.  When a repository call fails the snapshot is left as it
was — or, for multi-step cascades, reflects exactly the steps that were
persisted — and ``RepositoryFailure`` is raised to the caller.

Derived views (today's due slots, upcoming due slots) are recomputed from
the current snapshot on every query, so they follow the clock as well as
the data.

Construct one coordinator per application and pass it to every consumer::

    coordinator = TrackingCoordinator(subjects, schedules, doses, history)
    await coordinator.load()
    await coordinator.add_schedule(ScheduleDraft(subject_id=..., times_of_day=[time(9)]))
    coordinator.today_due_slots()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Mapping, Sequence, TypeVar
from uuid import UUID

from src.tracking.analytics import AdherenceAnalyzer, AdherenceSummary, CancellationToken
from src.tracking.base import (
    DoseEvent,
    HistoryRecord,
    RetentionPeriod,
    ScheduleDefinition,
    ScheduleDraft,
    SlotStatus,
    Subject,
)
from src.tracking.config_loader import TrackingConfig, get_tracking_config
from src.tracking.errors import RepositoryFailure
from src.tracking.evaluator import due_slots_on_day, next_due_time
from src.tracking.events import EventChannel, EventPayload, TrackingEvent
from src.tracking.reconciler import DoseReconciler
from src.tracking.repositories.base import (
    DoseEventRepository,
    HistoryRepository,
    ScheduleRepository,
    SubjectRepository,
)
from src.tracking.retention import HistoryRetentionPolicy
from src.tracking.validation import NormalizationResult, normalize_schedule

logger = logging.getLogger("adhera.tracking.coordinator")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Snapshot and view types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrackingSnapshot:
    """Immutable view of everything the coordinator owns.

    Attributes:
        schedules: All schedules, active or not.
        doses:     All recorded dose events.
        subjects:  Read-only subject cache used to resolve display data, keyed by id.
        version:   Incremented on every install.
    """

    schedules: tuple[ScheduleDefinition, ...] = ()
    doses: tuple[DoseEvent, ...] = ()
    subjects: Mapping[UUID, Subject] = field(default_factory=lambda: MappingProxyType({}))
    version: int = 0


@dataclass(frozen=True)
class TodaySlotView:
    subject: Subject
    scheduled_time: datetime
    status: SlotStatus
    source_schedule_id: UUID
    dose_id: UUID | None = None


@dataclass(frozen=True)
class UpcomingSlotView:
    subject: Subject
    scheduled_time: datetime
    source_schedule_id: UUID


@dataclass(frozen=True)
class ViewDiagnostics:
    """Outcome of the most recent view computation.

    ``dropped`` counts slots omitted because their subject could not be
    resolved.
    """

    view: str
    computed_at: datetime
    produced: int
    dropped: int


class TrackingCoordinator:
    """Orchestrates the schedule and dose lifecycle.

    Args:
        subjects:  Subject lookup (display data, existence).
        schedules: Schedule storage.
        doses:     Dose event storage.
        history:   History record storage.
        config:    Engine configuration; defaults to tracking_config.yaml.
        clock:     Returns the current local datetime; injectable for tests.
        events:    Event channel notified after each mutation.
        retention: Initial retention period; defaults to the config value.
    """

    def __init__(
        self,
        subjects: SubjectRepository,
        schedules: ScheduleRepository,
        doses: DoseEventRepository,
        history: HistoryRepository,
        config: TrackingConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        events: EventChannel | None = None,
        retention: RetentionPeriod | None = None,
    ) -> None:
        self._subjects_repo = subjects
        self._schedules_repo = schedules
        self._doses_repo = doses
        self._history_repo = history
        self._config = config or get_tracking_config()
        self._clock = clock or datetime.now
        self.events = events or EventChannel()

        self._reconciler = DoseReconciler(self._config)
        self._analyzer = AdherenceAnalyzer(self._config, self._reconciler)
        self._retention = HistoryRetentionPolicy(retention or self._config.default_retention)

        self._lock = asyncio.Lock()
        self._snapshot = TrackingSnapshot()
        self.last_view_diagnostics: ViewDiagnostics | None = None

    # ------------------------------------------------------------------
    # Snapshot plumbing
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> TrackingSnapshot:
        return self._snapshot

    @property
    def schedules(self) -> tuple[ScheduleDefinition, ...]:
        return self._snapshot.schedules

    @property
    def doses(self) -> tuple[DoseEvent, ...]:
        return self._snapshot.doses

    def now(self) -> datetime:
        """Current local time according to the injected clock."""
        return self._clock()

    async def _guard(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a repository call, converting any failure into RepositoryFailure."""
        try:
            return await awaitable
        except Exception as exc:
            logger.error("Repository failure during %s: %s", operation, exc)
            raise RepositoryFailure(operation, exc) from exc

    def _install(
        self,
        snapshot: TrackingSnapshot,
        reason: str,
        event: TrackingEvent = TrackingEvent.data_changed,
        subject_id: UUID | None = None,
    ) -> None:
        self._snapshot = replace(
            snapshot,
            subjects=MappingProxyType(dict(snapshot.subjects)),
            version=self._snapshot.version + 1,
        )
        logger.debug(
            "Installed snapshot v%d after %s (%d schedules, %d doses)",
            self._snapshot.version,
            reason,
            len(snapshot.schedules),
            len(snapshot.doses),
        )
        self.events.publish(EventPayload(event=event, reason=reason, subject_id=subject_id))

    async def _fetch_subjects(self) -> dict[UUID, Subject]:
        """Refresh the subject cache, keeping the previous one if the lookup fails."""
        try:
            subjects = await self._subjects_repo.fetch_all()
        except Exception as exc:
            logger.warning("Subject lookup failed, keeping cached subjects: %s", exc)
            return dict(self._snapshot.subjects)
        return {s.id: s for s in subjects}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> TrackingSnapshot:
        """Replace the in-memory state with the repositories' contents.

        Raises:
            RepositoryFailure: If schedules or doses cannot be fetched; the
                previous snapshot is kept.
        """
        async with self._lock:
            schedules = await self._guard("fetch schedules", self._schedules_repo.fetch_all())
            doses = await self._guard("fetch dose events", self._doses_repo.fetch_all())
            subjects = await self._fetch_subjects()
            self._install(
                TrackingSnapshot(
                    schedules=tuple(schedules),
                    doses=tuple(sorted(doses, key=lambda d: d.timestamp)),
                    subjects=subjects,
                ),
                reason="load",
            )
            logger.info(
                "Loaded %d schedule(s), %d dose event(s), %d subject(s)",
                len(schedules),
                len(doses),
                len(subjects),
            )
            return self._snapshot

    async def refresh_subjects(self) -> None:
        """Re-read subject display data (e.g. after a subject was added or renamed)."""
        async with self._lock:
            subjects = await self._fetch_subjects()
            self._install(replace(self._snapshot, subjects=subjects), reason="refresh_subjects")

    # ------------------------------------------------------------------
    # Schedule mutations
    # ------------------------------------------------------------------

    async def add_schedule(self, draft: ScheduleDraft) -> NormalizationResult:
        """Normalize, persist and install a new schedule.

        Raises:
            RepositoryFailure: If the schedule cannot be saved.
        """
        async with self._lock:
            subjects = await self._fetch_subjects()
            subject = subjects.get(draft.subject_id)
            result = normalize_schedule(
                draft,
                self._config.normalization,
                self.now().date(),
                subject_name=subject.name if subject else None,
            )
            await self._guard("save schedule", self._schedules_repo.save(result.schedule))
            snap = self._snapshot
            self._install(
                replace(snap, schedules=snap.schedules + (result.schedule,), subjects=subjects),
                reason="add_schedule",
                subject_id=result.schedule.subject_id,
            )
            logger.info(
                "Added %s schedule %s for %s",
                result.schedule.frequency.value,
                result.schedule.id,
                result.schedule.subject_name,
            )
            return result

    async def update_schedule(
        self, schedule_id: UUID, draft: ScheduleDraft
    ) -> NormalizationResult | None:
        """Replace an existing schedule in place.

        Returns:
            The normalization result, or None if ``schedule_id`` is unknown.

        Raises:
            RepositoryFailure: If the schedule cannot be saved.
        """
        async with self._lock:
            snap = self._snapshot
            if self.schedule_by_id(schedule_id) is None:
                logger.warning("update_schedule: unknown schedule %s", schedule_id)
                return None
            subjects = await self._fetch_subjects()
            subject = subjects.get(draft.subject_id)
            result = normalize_schedule(
                draft,
                self._config.normalization,
                self.now().date(),
                schedule_id=schedule_id,
                subject_name=subject.name if subject else None,
            )
            await self._guard("save schedule", self._schedules_repo.save(result.schedule))
            schedules = tuple(
                result.schedule if s.id == schedule_id else s for s in snap.schedules
            )
            self._install(
                replace(snap, schedules=schedules, subjects=subjects),
                reason="update_schedule",
                subject_id=result.schedule.subject_id,
            )
            logger.info("Updated schedule %s", schedule_id)
            return result

    async def delete_schedule(self, schedule_id: UUID) -> bool:
        """Delete a schedule and every dose event of its subject.

        Returns:
            False if ``schedule_id`` is unknown.

        Raises:
            RepositoryFailure: If a delete fails.  When the schedule delete
                succeeded but the dose cascade failed, the snapshot reflects
                the deleted schedule only.
        """
        async with self._lock:
            snap = self._snapshot
            schedule = self.schedule_by_id(schedule_id)
            if schedule is None:
                logger.warning("delete_schedule: unknown schedule %s", schedule_id)
                return False

            await self._guard("delete schedule", self._schedules_repo.delete(schedule_id))
            updated = replace(
                snap, schedules=tuple(s for s in snap.schedules if s.id != schedule_id)
            )
            try:
                await self._guard(
                    "delete dose events for subject",
                    self._doses_repo.delete_for_subject(schedule.subject_id),
                )
                removed = sum(1 for d in snap.doses if d.subject_id == schedule.subject_id)
                updated = replace(
                    updated,
                    doses=tuple(d for d in snap.doses if d.subject_id != schedule.subject_id),
                )
                logger.info(
                    "Deleted schedule %s for %s and %d dose event(s)",
                    schedule_id,
                    schedule.subject_name,
                    removed,
                )
            finally:
                self._install(updated, reason="delete_schedule", subject_id=schedule.subject_id)
            return True

    async def bulk_add_schedules(
        self, drafts: Sequence[ScheduleDraft]
    ) -> list[NormalizationResult]:
        """Normalize and persist many schedules, then install them in one swap.

        Normalization runs on a worker thread.  If a save fails, the
        schedules saved before it are still installed (in one swap) and
        RepositoryFailure is raised.
        """
        async with self._lock:
            subjects = await self._fetch_subjects()
            today = self.now().date()
            results = await asyncio.to_thread(self._normalize_all, list(drafts), subjects, today)

            saved: list[ScheduleDefinition] = []
            try:
                for result in results:
                    await self._guard("save schedule", self._schedules_repo.save(result.schedule))
                    saved.append(result.schedule)
            finally:
                if saved:
                    snap = self._snapshot
                    self._install(
                        replace(snap, schedules=snap.schedules + tuple(saved), subjects=subjects),
                        reason="bulk_add_schedules",
                    )
                    logger.info("Bulk-added %d of %d schedule(s)", len(saved), len(results))
            return results

    def _normalize_all(
        self,
        drafts: list[ScheduleDraft],
        subjects: dict[UUID, Subject],
        today: date,
    ) -> list[NormalizationResult]:
        results = []
        for draft in drafts:
            subject = subjects.get(draft.subject_id)
            results.append(
                normalize_schedule(
                    draft,
                    self._config.normalization,
                    today,
                    subject_name=subject.name if subject else None,
                )
            )
        return results

    # ------------------------------------------------------------------
    # Dose mutations
    # ------------------------------------------------------------------

    async def record_dose(self, event: DoseEvent) -> DoseEvent:
        """Persist a dose event and append the matching history record.

        The history record's scheduled time is the closest due slot within
        tolerance on the dose's day, or the dose timestamp if none matches.

        Raises:
            RepositoryFailure: If the dose or its history record cannot be saved.
        """
        async with self._lock:
            snap = self._snapshot
            if not event.subject_name:
                subject = snap.subjects.get(event.subject_id)
                if subject is not None:
                    event = replace(event, subject_name=subject.name)

            await self._guard("save dose event", self._doses_repo.save(event))
            doses = tuple(sorted(snap.doses + (event,), key=lambda d: d.timestamp))
            self._install(replace(snap, doses=doses), reason="record_dose", subject_id=event.subject_id)
            logger.info(
                "Recorded %s dose for %s at %s",
                event.status.value,
                event.subject_name,
                event.timestamp.isoformat(timespec="minutes"),
            )

            now = self.now()
            record = HistoryRecord(
                subject_id=event.subject_id,
                subject_name=event.subject_name,
                scheduled_time=self._matching_slot_time(event) or event.timestamp,
                recorded_time=now,
                status=event.status,
                notes=event.notes,
            )
            await self._guard("append history record", self._history_repo.append(record))
            await self._apply_retention_locked(now)
            return event

    def _matching_slot_time(self, event: DoseEvent) -> datetime | None:
        # The tolerance window can cross midnight, so neighbouring days count too
        day = event.timestamp.date()
        in_window = [
            s.scheduled_time
            for offset in (-1, 0, 1)
            for s in due_slots_on_day(
                self._snapshot.schedules, day + timedelta(days=offset), subject_id=event.subject_id
            )
            if abs(s.scheduled_time - event.timestamp) <= self._reconciler.tolerance
        ]
        if not in_window:
            return None
        return min(in_window, key=lambda t: (abs(t - event.timestamp), t))

    async def update_dose(self, event: DoseEvent) -> DoseEvent | None:
        """Replace a recorded dose by id.  Returns None if the id is unknown."""
        async with self._lock:
            snap = self._snapshot
            if self.dose_by_id(event.id) is None:
                logger.warning("update_dose: unknown dose %s", event.id)
                return None
            await self._guard("save dose event", self._doses_repo.save(event))
            doses = tuple(
                sorted(
                    (event if d.id == event.id else d for d in snap.doses),
                    key=lambda d: d.timestamp,
                )
            )
            self._install(replace(snap, doses=doses), reason="update_dose", subject_id=event.subject_id)
            return event

    async def delete_dose(self, dose_id: UUID) -> bool:
        """Delete a recorded dose.  Returns False if the id is unknown."""
        async with self._lock:
            snap = self._snapshot
            dose = self.dose_by_id(dose_id)
            if dose is None:
                logger.warning("delete_dose: unknown dose %s", dose_id)
                return False
            await self._guard("delete dose event", self._doses_repo.delete(dose_id))
            self._install(
                replace(snap, doses=tuple(d for d in snap.doses if d.id != dose_id)),
                reason="delete_dose",
                subject_id=dose.subject_id,
            )
            return True

    # ------------------------------------------------------------------
    # Subject cascades
    # ------------------------------------------------------------------

    async def on_subject_deleted(self, subject_id: UUID) -> None:
        """Delete every schedule, dose event and history record of a subject.

        Raises:
            RepositoryFailure: If a delete fails.  The snapshot reflects the
                cascade steps that completed.
        """
        async with self._lock:
            snap = self._snapshot
            subjects = {k: v for k, v in snap.subjects.items() if k != subject_id}
            updated = snap
            try:
                await self._guard(
                    "delete schedules for subject",
                    self._schedules_repo.delete_for_subject(subject_id),
                )
                updated = replace(
                    updated,
                    schedules=tuple(s for s in snap.schedules if s.subject_id != subject_id),
                )
                await self._guard(
                    "delete dose events for subject",
                    self._doses_repo.delete_for_subject(subject_id),
                )
                updated = replace(
                    updated, doses=tuple(d for d in snap.doses if d.subject_id != subject_id)
                )
                await self._guard(
                    "delete history for subject",
                    self._history_repo.delete_for_subject(subject_id),
                )
                updated = replace(updated, subjects=subjects)
                logger.info("Cleaned up tracking data for deleted subject %s", subject_id)
            finally:
                if updated is not snap:
                    self._install(
                        updated,
                        reason="on_subject_deleted",
                        event=TrackingEvent.subject_deleted,
                        subject_id=subject_id,
                    )

    async def on_all_subjects_deleted(self) -> None:
        """Delete all schedules, dose events and history records.

        Raises:
            RepositoryFailure: If a delete fails.  The snapshot reflects the
                cascade steps that completed.
        """
        async with self._lock:
            snap = self._snapshot
            updated = snap
            try:
                await self._guard("delete all schedules", self._schedules_repo.delete_all())
                updated = replace(updated, schedules=())
                await self._guard("delete all dose events", self._doses_repo.delete_all())
                updated = replace(updated, doses=())
                await self._guard("delete all history", self._history_repo.delete_all())
                updated = replace(updated, subjects={})
                logger.info("Cleared all tracking data")
            finally:
                if updated is not snap:
                    self._install(
                        updated,
                        reason="on_all_subjects_deleted",
                        event=TrackingEvent.all_subjects_deleted,
                    )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def today_due_slots(self) -> list[TodaySlotView]:
        """Every due slot for today across active schedules, reconciled.

        Slots whose subject cannot be resolved are omitted; the count is
        recorded in ``last_view_diagnostics``.
        """
        snap = self._snapshot
        now = self.now()
        reconciled = self._reconciler.reconcile_day(snap.schedules, snap.doses, now.date(), now)

        views: list[TodaySlotView] = []
        dropped = 0
        for slot in reconciled:
            subject = snap.subjects.get(slot.subject_id)
            if subject is None:
                dropped += 1
                continue
            views.append(
                TodaySlotView(
                    subject=subject,
                    scheduled_time=slot.scheduled_time,
                    status=slot.status,
                    source_schedule_id=slot.source_schedule_id,
                    dose_id=slot.dose_id,
                )
            )
        self._record_diagnostics("today", now, len(views), dropped)
        return views

    def upcoming_due_slots(self, limit: int | None = None) -> list[UpcomingSlotView]:
        """Next due time per active schedule, soonest first, capped at ``limit``."""
        snap = self._snapshot
        now = self.now()
        limit = self._config.views.upcoming_limit if limit is None else limit

        candidates: list[tuple[datetime, ScheduleDefinition]] = []
        for schedule in snap.schedules:
            if not schedule.active:
                continue
            due = next_due_time(schedule, now)
            if due is not None:
                candidates.append((due, schedule))
        candidates.sort(key=lambda item: (item[0], item[1].id))

        views: list[UpcomingSlotView] = []
        dropped = 0
        for due, schedule in candidates:
            subject = snap.subjects.get(schedule.subject_id)
            if subject is None:
                dropped += 1
                continue
            views.append(
                UpcomingSlotView(subject=subject, scheduled_time=due, source_schedule_id=schedule.id)
            )
        self._record_diagnostics("upcoming", now, len(views), dropped)
        return views[: max(limit, 0)]

    def _record_diagnostics(self, view: str, now: datetime, produced: int, dropped: int) -> None:
        if dropped:
            logger.warning(
                "%s view dropped %d slot(s) with unresolved subjects", view, dropped
            )
        self.last_view_diagnostics = ViewDiagnostics(
            view=view, computed_at=now, produced=produced, dropped=dropped
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def adherence_rate(
        self,
        subject_id: UUID,
        window_days: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> float:
        """Adherence percentage [0, 100] over the trailing window."""
        snap = self._snapshot
        window = window_days if window_days is not None else self._config.analytics.default_window_days
        return self._analyzer.adherence_rate(
            subject_id, window, snap.schedules, snap.doses, self.now().date(), cancel
        )

    def current_streak(self, subject_id: UUID, cancel: CancellationToken | None = None) -> int:
        """Consecutive fully-taken days ending today."""
        snap = self._snapshot
        return self._analyzer.current_streak(
            subject_id, snap.schedules, snap.doses, self.now().date(), cancel
        )

    def adherence_summary(
        self,
        subject_id: UUID,
        window_days: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> AdherenceSummary:
        snap = self._snapshot
        window = window_days if window_days is not None else self._config.analytics.default_window_days
        return self._analyzer.summarize(
            subject_id, window, snap.schedules, snap.doses, self.now(), cancel
        )

    async def adherence_report(
        self,
        window_days: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[AdherenceSummary]:
        """Summaries for every subject with a schedule, computed on a worker thread.

        Raises:
            ComputationCancelled: If ``cancel`` fires during the scan.
        """
        snap = self._snapshot
        now = self.now()
        window = window_days if window_days is not None else self._config.analytics.default_window_days
        subject_ids = sorted({s.subject_id for s in snap.schedules})

        def build() -> list[AdherenceSummary]:
            return [
                self._analyzer.summarize(sid, window, snap.schedules, snap.doses, now, cancel)
                for sid in subject_ids
            ]

        return await asyncio.to_thread(build)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def schedule_by_id(self, schedule_id: UUID) -> ScheduleDefinition | None:
        return next((s for s in self._snapshot.schedules if s.id == schedule_id), None)

    def dose_by_id(self, dose_id: UUID) -> DoseEvent | None:
        return next((d for d in self._snapshot.doses if d.id == dose_id), None)

    def schedules_for_subject(
        self, subject_id: UUID, include_inactive: bool = False
    ) -> list[ScheduleDefinition]:
        return [
            s
            for s in self._snapshot.schedules
            if s.subject_id == subject_id and (include_inactive or s.active)
        ]

    def has_schedule(self, subject_id: UUID) -> bool:
        return any(s.subject_id == subject_id for s in self._snapshot.schedules)

    def subjects_with_schedules(self) -> set[UUID]:
        return {s.subject_id for s in self._snapshot.schedules}

    def doses_for_subject(
        self,
        subject_id: UUID,
        start: datetime,
        end: datetime | None = None,
    ) -> list[DoseEvent]:
        """Dose events of a subject between ``start`` and ``end`` (default now), newest first."""
        end = end or self.now()
        return sorted(
            (
                d
                for d in self._snapshot.doses
                if d.subject_id == subject_id and start <= d.timestamp <= end
            ),
            key=lambda d: d.timestamp,
            reverse=True,
        )

    async def history_for_subject(self, subject_id: UUID) -> list[HistoryRecord]:
        records = await self._guard("fetch history", self._history_repo.fetch_all())
        return sorted(
            (r for r in records if r.subject_id == subject_id),
            key=lambda r: r.recorded_time,
            reverse=True,
        )

    async def history_in_range(
        self, start: datetime, end: datetime | None = None
    ) -> list[HistoryRecord]:
        end = end or self.now()
        records = await self._guard("fetch history", self._history_repo.fetch_all())
        return sorted(
            (r for r in records if start <= r.recorded_time <= end),
            key=lambda r: r.recorded_time,
            reverse=True,
        )

    async def recent_history(self, days: int = 7) -> list[HistoryRecord]:
        return await self.history_in_range(self.now() - timedelta(days=days))

    async def verify_cleanup(self, subject_id: UUID | None = None) -> bool:
        """Return True if no tracking data remains (for one subject, or at all)."""

        def matches(items: Iterable, attr: str = "subject_id") -> bool:
            if subject_id is None:
                return any(True for _ in items)
            return any(getattr(item, attr) == subject_id for item in items)

        snap = self._snapshot
        stored_schedules = await self._guard("fetch schedules", self._schedules_repo.fetch_all())
        stored_doses = await self._guard("fetch dose events", self._doses_repo.fetch_all())
        stored_history = await self._guard("fetch history", self._history_repo.fetch_all())
        leftovers = [
            matches(snap.schedules),
            matches(snap.doses),
            matches(stored_schedules),
            matches(stored_doses),
            matches(stored_history),
        ]
        if any(leftovers):
            logger.warning("Cleanup verification found leftover data for %s", subject_id or "all")
            return False
        return True

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    @property
    def retention_period(self) -> RetentionPeriod:
        return self._retention.period

    async def set_retention_period(self, period: RetentionPeriod) -> int:
        """Change the retention period and prune immediately.

        Returns:
            Number of history records removed.
        """
        async with self._lock:
            self._retention.period = period
            logger.info("Retention period set to %s", period.value)
            return await self._apply_retention_locked(self.now())

    async def apply_retention(self) -> int:
        """Prune history older than the retention period.  Returns the count removed."""
        async with self._lock:
            return await self._apply_retention_locked(self.now())

    async def _apply_retention_locked(self, now: datetime) -> int:
        removed = await self._guard(
            "prune history", self._retention.apply(self._history_repo, now)
        )
        if removed:
            self.events.publish(
                EventPayload(
                    event=TrackingEvent.history_pruned,
                    reason="apply_retention",
                    extra={"removed": removed},
                )
            )
        return removed
