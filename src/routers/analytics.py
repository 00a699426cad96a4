"""Adherence analytics endpoints.

The per-subject walks are synchronous, so their handlers are plain ``def``
and run in the FastAPI threadpool instead of on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import AppSettings, Coordinator
from src.models.tracking import AdherenceRead, StreakRead, SummaryRead
from src.tracking.analytics import CancellationToken
from src.tracking.errors import ComputationCancelled

router = APIRouter(prefix="/analytics", tags=["analytics"])
logger = logging.getLogger("adhera.analytics")


def _require_schedule(coordinator: Coordinator, subject_id: uuid.UUID) -> None:
    if not coordinator.has_schedule(subject_id):
        raise HTTPException(status_code=404, detail="No schedules for subject")


@router.get("/subjects/{subject_id}/adherence", response_model=AdherenceRead)
def subject_adherence(
    subject_id: uuid.UUID,
    coordinator: Coordinator,
    window_days: int = Query(default=30, ge=1, le=3650),
) -> Any:
    _require_schedule(coordinator, subject_id)
    return AdherenceRead(
        subject_id=subject_id,
        window_days=window_days,
        adherence_rate=coordinator.adherence_rate(subject_id, window_days),
    )


@router.get("/subjects/{subject_id}/streak", response_model=StreakRead)
def subject_streak(subject_id: uuid.UUID, coordinator: Coordinator) -> Any:
    _require_schedule(coordinator, subject_id)
    return StreakRead(subject_id=subject_id, current_streak=coordinator.current_streak(subject_id))


@router.get("/subjects/{subject_id}/summary", response_model=SummaryRead)
def subject_summary(
    subject_id: uuid.UUID,
    coordinator: Coordinator,
    window_days: int = Query(default=30, ge=1, le=3650),
) -> Any:
    _require_schedule(coordinator, subject_id)
    return SummaryRead.model_validate(coordinator.adherence_summary(subject_id, window_days))


@router.get("/report", response_model=list[SummaryRead])
async def adherence_report(
    coordinator: Coordinator,
    settings: AppSettings,
    window_days: int = Query(default=30, ge=1, le=3650),
) -> Any:
    """Summaries for every subject with a schedule.

    The scan runs on a worker thread; if it exceeds the configured timeout
    it is cancelled and 504 is returned.
    """
    cancel = CancellationToken()
    task = asyncio.ensure_future(coordinator.adherence_report(window_days, cancel))
    try:
        summaries = await asyncio.wait_for(
            asyncio.shield(task), timeout=settings.analytics_report_timeout_seconds
        )
    except asyncio.TimeoutError:
        cancel.cancel()
        try:
            await task
        except ComputationCancelled:
            logger.warning("Adherence report cancelled after timeout")
        raise HTTPException(status_code=504, detail="Adherence report timed out")
    return [SummaryRead.model_validate(s) for s in summaries]
