"""Dose reconciler — match recorded dose events to expected due slots.

For every due slot the reconciler looks for a dose event of the same
subject whose timestamp lies within the tolerance window (default ±30
minutes, from tracking_config.yaml).  The closest event wins; ties go to the
earliest event, then to input order.  A slot without a matching event is
MISSED once its time has passed and PENDING before that.

Matching is per slot: a single event may satisfy two slots that are both
within tolerance of it.

The reconciler never mutates its inputs and holds no state between calls,
so the same (schedules, events) snapshot always yields the same result.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Sequence
from uuid import UUID

from src.tracking.base import (
    DoseEvent,
    DoseStatus,
    DueSlot,
    ReconciledSlot,
    ScheduleDefinition,
    SlotStatus,
)
from src.tracking.config_loader import TrackingConfig, get_tracking_config
from src.tracking.evaluator import due_slots_on_day, iter_days

logger = logging.getLogger("adhera.tracking.reconciler")

_DOSE_TO_SLOT_STATUS: dict[DoseStatus, SlotStatus] = {
    DoseStatus.taken: SlotStatus.taken,
    DoseStatus.skipped: SlotStatus.skipped,
    DoseStatus.missed: SlotStatus.missed,
}


class DoseReconciler:
    """Associate dose events with due slots and classify each slot.

    Usage::

        reconciler = DoseReconciler()
        slots = reconciler.reconcile_day(schedules, events, date.today(), datetime.now())
        for slot in slots:
            print(slot.scheduled_time, slot.status)
    """

    def __init__(
        self,
        config: TrackingConfig | None = None,
        tolerance: timedelta | None = None,
    ) -> None:
        self._config = config or get_tracking_config()
        self._tolerance = tolerance or self._config.reconciliation.tolerance

    @property
    def tolerance(self) -> timedelta:
        return self._tolerance

    def find_matching_event(
        self,
        subject_id: UUID,
        slot_time: datetime,
        events: Sequence[DoseEvent],
    ) -> DoseEvent | None:
        """Return the event that best satisfies a slot, or None.

        Args:
            subject_id: Only events for this subject are considered.
            slot_time:  The slot's scheduled time.
            events:     Candidate events (any subject, any order).

        Returns:
            The event with the smallest ``|timestamp - slot_time|`` inside the
            tolerance window; ties broken by earliest timestamp, then by
            position in ``events``.
        """
        best: tuple[timedelta, datetime, int] | None = None
        best_event: DoseEvent | None = None
        for index, event in enumerate(events):
            if event.subject_id != subject_id:
                continue
            diff = abs(event.timestamp - slot_time)
            if diff > self._tolerance:
                continue
            key = (diff, event.timestamp, index)
            if best is None or key < best:
                best = key
                best_event = event
        return best_event

    def classify(
        self,
        slot: DueSlot,
        events: Sequence[DoseEvent],
        now: datetime,
    ) -> ReconciledSlot:
        """Reconcile a single slot against the events."""
        event = self.find_matching_event(slot.subject_id, slot.scheduled_time, events)
        if event is not None:
            return ReconciledSlot(
                slot=slot,
                status=_DOSE_TO_SLOT_STATUS[event.status],
                dose_id=event.id,
            )
        status = SlotStatus.missed if slot.scheduled_time < now else SlotStatus.pending
        return ReconciledSlot(slot=slot, status=status)

    def reconcile_day(
        self,
        schedules: Sequence[ScheduleDefinition],
        events: Sequence[DoseEvent],
        day: date,
        now: datetime,
        subject_id: UUID | None = None,
    ) -> list[ReconciledSlot]:
        """Reconcile every due slot of one day.

        Args:
            schedules:  Schedule snapshot; inactive schedules are ignored.
            events:     Dose event snapshot.
            day:        Local calendar day to evaluate.
            now:        Reference instant separating MISSED from PENDING.
            subject_id: Restrict to one subject when given.

        Returns:
            Reconciled slots ordered by scheduled time.
        """
        slots = due_slots_on_day(schedules, day, subject_id=subject_id)
        if subject_id is not None:
            events = [e for e in events if e.subject_id == subject_id]
        reconciled = [self.classify(slot, events, now) for slot in slots]
        logger.debug(
            "Reconciled %d slots for %s (%d events considered)",
            len(reconciled),
            day,
            len(events),
        )
        return reconciled

    def reconcile_range(
        self,
        schedules: Sequence[ScheduleDefinition],
        events: Sequence[DoseEvent],
        start: date,
        end: date,
        now: datetime,
        subject_id: UUID | None = None,
    ) -> list[ReconciledSlot]:
        """Reconcile every day from ``start`` to ``end`` inclusive."""
        if subject_id is not None:
            events = [e for e in events if e.subject_id == subject_id]
        result: list[ReconciledSlot] = []
        for day in iter_days(start, end):
            result.extend(self.reconcile_day(schedules, events, day, now, subject_id))
        return result
