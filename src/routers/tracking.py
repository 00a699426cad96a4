"""Derived due-slot views: what is due today and what is coming up next."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from src.dependencies import Coordinator
from src.models.tracking import DueSlotRead, UpcomingSlotRead

router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.get("/today", response_model=list[DueSlotRead])
async def today_due_slots(coordinator: Coordinator) -> Any:
    """Every slot due today, reconciled to taken / skipped / missed / pending."""
    return [DueSlotRead.from_view(v) for v in coordinator.today_due_slots()]


@router.get("/upcoming", response_model=list[UpcomingSlotRead])
async def upcoming_due_slots(
    coordinator: Coordinator,
    limit: int | None = Query(default=None, ge=0, le=100),
) -> Any:
    """Next due time per active schedule, soonest first."""
    return [UpcomingSlotRead.from_view(v) for v in coordinator.upcoming_due_slots(limit)]
