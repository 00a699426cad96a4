"""Dose history and retention endpoints."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Query

from src.dependencies import Coordinator
from src.models.tracking import (
    HistoryRecordRead,
    RetentionApplied,
    RetentionRead,
    RetentionUpdate,
)

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=list[HistoryRecordRead])
async def list_history(
    coordinator: Coordinator,
    subject_id: uuid.UUID | None = Query(default=None),
    days: int = Query(default=7, ge=1, le=3650),
) -> Any:
    """History records from the last ``days`` days, newest first."""
    records = await coordinator.recent_history(days)
    if subject_id is not None:
        records = [r for r in records if r.subject_id == subject_id]
    return [HistoryRecordRead.model_validate(r) for r in records]


@router.get("/retention", response_model=RetentionRead)
async def get_retention(coordinator: Coordinator) -> Any:
    period = coordinator.retention_period
    return RetentionRead(period=period, days=period.days)


@router.put("/retention", response_model=RetentionApplied)
async def set_retention(body: RetentionUpdate, coordinator: Coordinator) -> Any:
    """Change the retention period; older history is pruned immediately."""
    removed = await coordinator.set_retention_period(body.period)
    return RetentionApplied(period=body.period, removed=removed)


@router.post("/retention/apply", response_model=RetentionApplied)
async def apply_retention(coordinator: Coordinator) -> Any:
    removed = await coordinator.apply_retention()
    return RetentionApplied(period=coordinator.retention_period, removed=removed)
