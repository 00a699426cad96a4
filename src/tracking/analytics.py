"""Adherence analytics — adherence rate and current streak.

Both metrics are computed from a snapshot of schedules and dose events and
stay correct as schedules are added, edited, deactivated or deleted
mid-history, because nothing is cached: every call walks the calendar again.

Adherence rate (trailing window of ``window_days``)::

    expected_total = Σ over days in [today - window_days, today]
                       Σ over the subject's active schedules
                         expected_dose_count(schedule, day)
    taken_total    = TAKEN events for the subject dated inside the window
    rate           = taken_total / expected_total × 100   (0 when expected_total == 0)

Streak: consecutive days, walking back from today, on which every due slot
of the subject has a matching TAKEN event.  The first day that fails — or
that has nothing due — ends the walk.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Sequence
from uuid import UUID

from src.tracking.base import (
    DoseEvent,
    DoseStatus,
    ScheduleDefinition,
    SlotStatus,
)
from src.tracking.config_loader import TrackingConfig, get_tracking_config
from src.tracking.errors import ComputationCancelled
from src.tracking.evaluator import due_slots_on_day, expected_dose_count, iter_days
from src.tracking.reconciler import DoseReconciler

logger = logging.getLogger("adhera.tracking.analytics")


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a long walk.

    Safe to cancel from another thread while the walk runs on a worker.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ComputationCancelled("Analytics computation cancelled")


@dataclass(frozen=True)
class AdherenceSummary:
    """Adherence figures for one subject over a trailing window.

    Attributes:
        subject_id:      Subject the figures belong to.
        window_days:     Length of the trailing window.
        adherence_rate:  Percentage 0–100.
        current_streak:  Consecutive fully-taken days ending today.
        expected_doses:  Expected dose count over the window.
        taken_doses:     TAKEN events in the window.
        skipped_doses:   SKIPPED events in the window.
        missed_slots:    Due slots in the window that reconciled to MISSED.
    """

    subject_id: UUID
    window_days: int
    adherence_rate: float
    current_streak: int
    expected_doses: int
    taken_doses: int
    skipped_doses: int
    missed_slots: int


class AdherenceAnalyzer:
    """Compute adherence metrics from immutable snapshots.

    Usage::

        analyzer = AdherenceAnalyzer()
        rate = analyzer.adherence_rate(subject_id, 30, schedules, events, date.today())
        streak = analyzer.current_streak(subject_id, schedules, events, date.today())
    """

    def __init__(
        self,
        config: TrackingConfig | None = None,
        reconciler: DoseReconciler | None = None,
    ) -> None:
        self._config = config or get_tracking_config()
        self._reconciler = reconciler or DoseReconciler(self._config)
        self._check_every = self._config.analytics.cancellation_check_days

    def _checkpoint(self, days_walked: int, cancel: CancellationToken | None) -> None:
        if cancel is not None and days_walked % self._check_every == 0:
            cancel.raise_if_cancelled()

    @staticmethod
    def _subject_schedules(
        subject_id: UUID, schedules: Sequence[ScheduleDefinition]
    ) -> list[ScheduleDefinition]:
        return [s for s in schedules if s.subject_id == subject_id and s.active]

    @staticmethod
    def _events_in_window(
        subject_id: UUID,
        events: Sequence[DoseEvent],
        start: date,
        end: date,
    ) -> list[DoseEvent]:
        return [
            e
            for e in events
            if e.subject_id == subject_id and start <= e.timestamp.date() <= end
        ]

    def expected_total(
        self,
        subject_id: UUID,
        window_days: int,
        schedules: Sequence[ScheduleDefinition],
        today: date,
        cancel: CancellationToken | None = None,
    ) -> int:
        """Expected dose count over ``[today - window_days, today]``."""
        subject_schedules = self._subject_schedules(subject_id, schedules)
        if not subject_schedules:
            return 0
        total = 0
        start = today - timedelta(days=window_days)
        for walked, day in enumerate(iter_days(start, today)):
            self._checkpoint(walked, cancel)
            total += sum(expected_dose_count(s, day) for s in subject_schedules)
        return total

    def adherence_rate(
        self,
        subject_id: UUID,
        window_days: int,
        schedules: Sequence[ScheduleDefinition],
        events: Sequence[DoseEvent],
        today: date,
        cancel: CancellationToken | None = None,
    ) -> float:
        """Percentage of expected doses taken in the trailing window.

        Args:
            subject_id:  Subject to analyze.
            window_days: Days to look back from ``today`` (inclusive range).
            schedules:   Schedule snapshot.
            events:      Dose event snapshot.
            today:       Local calendar day ending the window.
            cancel:      Optional cancellation token.

        Returns:
            A value in [0, 100].  Exactly 0.0 when nothing was expected.

        Raises:
            ComputationCancelled: If ``cancel`` fires during the walk.
        """
        expected = self.expected_total(subject_id, window_days, schedules, today, cancel)
        if expected == 0:
            return 0.0
        start = today - timedelta(days=window_days)
        taken = sum(
            1
            for e in self._events_in_window(subject_id, events, start, today)
            if e.status is DoseStatus.taken
        )
        # Extra doses beyond the expected count do not push the rate past 100
        return min(taken / expected * 100.0, 100.0)

    def current_streak(
        self,
        subject_id: UUID,
        schedules: Sequence[ScheduleDefinition],
        events: Sequence[DoseEvent],
        today: date,
        cancel: CancellationToken | None = None,
    ) -> int:
        """Count consecutive fully-taken days walking backward from ``today``.

        A day counts only if it has at least one due slot and every due slot
        has a matching TAKEN event within the reconciliation tolerance.  A
        day with nothing due ends the streak.

        Raises:
            ComputationCancelled: If ``cancel`` fires during the walk.
        """
        subject_schedules = self._subject_schedules(subject_id, schedules)
        if not subject_schedules:
            return 0
        taken_events = [
            e for e in events if e.subject_id == subject_id and e.status is DoseStatus.taken
        ]

        streak = 0
        day = today
        while True:
            self._checkpoint(streak, cancel)
            slots = due_slots_on_day(subject_schedules, day)
            if not slots:
                break
            all_taken = all(
                self._reconciler.find_matching_event(subject_id, slot.scheduled_time, taken_events)
                is not None
                for slot in slots
            )
            if not all_taken:
                break
            streak += 1
            day -= timedelta(days=1)

        logger.debug("Streak for %s ending %s: %d day(s)", subject_id, today, streak)
        return streak

    def summarize(
        self,
        subject_id: UUID,
        window_days: int,
        schedules: Sequence[ScheduleDefinition],
        events: Sequence[DoseEvent],
        now: datetime,
        cancel: CancellationToken | None = None,
    ) -> AdherenceSummary:
        """Compute rate, streak and per-status counts for one subject."""
        today = now.date()
        start = today - timedelta(days=window_days)
        window_events = self._events_in_window(subject_id, events, start, today)
        subject_schedules = self._subject_schedules(subject_id, schedules)

        missed_slots = 0
        for walked, day in enumerate(iter_days(start, today)):
            self._checkpoint(walked, cancel)
            for slot in self._reconciler.reconcile_day(
                subject_schedules, window_events, day, now, subject_id=subject_id
            ):
                if slot.status is SlotStatus.missed:
                    missed_slots += 1

        return AdherenceSummary(
            subject_id=subject_id,
            window_days=window_days,
            adherence_rate=self.adherence_rate(
                subject_id, window_days, schedules, events, today, cancel
            ),
            current_streak=self.current_streak(subject_id, schedules, events, today, cancel),
            expected_doses=self.expected_total(subject_id, window_days, schedules, today, cancel),
            taken_doses=sum(1 for e in window_events if e.status is DoseStatus.taken),
            skipped_doses=sum(1 for e in window_events if e.status is DoseStatus.skipped),
            missed_slots=missed_slots,
        )
