"""History retention policy — age-based pruning of history records."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Sequence

from src.tracking.base import HistoryRecord, RetentionPeriod
from src.tracking.repositories.base import HistoryRepository

logger = logging.getLogger("adhera.tracking.retention")


class HistoryRetentionPolicy:
    """Drop history records whose ``recorded_time`` is older than the period.

    ``RetentionPeriod.forever`` keeps everything.
    """

    def __init__(self, period: RetentionPeriod = RetentionPeriod.months_6) -> None:
        self.period = period

    def cutoff(self, now: datetime) -> datetime | None:
        """Oldest ``recorded_time`` that survives, or None when retention is indefinite."""
        days = self.period.days
        if days is None:
            return None
        return now - timedelta(days=days)

    def prune(self, records: Sequence[HistoryRecord], now: datetime) -> list[HistoryRecord]:
        """Return the records that survive the policy (input is not modified)."""
        cutoff = self.cutoff(now)
        if cutoff is None:
            return list(records)
        return [r for r in records if r.recorded_time >= cutoff]

    async def apply(self, repository: HistoryRepository, now: datetime) -> int:
        """Delete expired records from ``repository``.

        Returns:
            Number of records removed (0 for indefinite retention).
        """
        cutoff = self.cutoff(now)
        if cutoff is None:
            logger.debug("Retention is indefinite; nothing pruned")
            return 0
        removed = await repository.delete_before(cutoff)
        if removed:
            logger.info(
                "Retention policy (%s) removed %d history record(s) recorded before %s",
                self.period.value,
                removed,
                cutoff.isoformat(timespec="minutes"),
            )
        return removed
