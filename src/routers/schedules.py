"""CRUD endpoints for medication schedules."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import Coordinator
from src.models.tracking import (
    BulkScheduleCreate,
    ScheduleCreate,
    ScheduleRead,
    ScheduleUpdate,
    ScheduleWriteResult,
)

router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.get("", response_model=list[ScheduleRead])
async def list_schedules(
    coordinator: Coordinator,
    subject_id: uuid.UUID | None = Query(default=None),
    active_only: bool = Query(default=False),
) -> Any:
    if subject_id is not None:
        schedules = coordinator.schedules_for_subject(subject_id, include_inactive=not active_only)
    else:
        schedules = [s for s in coordinator.schedules if s.active or not active_only]
    return [ScheduleRead.from_domain(s) for s in schedules]


@router.post("", response_model=ScheduleWriteResult, status_code=201)
async def create_schedule(body: ScheduleCreate, coordinator: Coordinator) -> Any:
    result = await coordinator.add_schedule(body.to_draft())
    return ScheduleWriteResult.from_result(result)


@router.post("/bulk", response_model=list[ScheduleWriteResult], status_code=201)
async def bulk_create_schedules(body: BulkScheduleCreate, coordinator: Coordinator) -> Any:
    results = await coordinator.bulk_add_schedules([s.to_draft() for s in body.schedules])
    return [ScheduleWriteResult.from_result(r) for r in results]


@router.get("/{schedule_id}", response_model=ScheduleRead)
async def get_schedule(schedule_id: uuid.UUID, coordinator: Coordinator) -> Any:
    schedule = coordinator.schedule_by_id(schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return ScheduleRead.from_domain(schedule)


@router.patch("/{schedule_id}", response_model=ScheduleWriteResult)
async def update_schedule(
    schedule_id: uuid.UUID, body: ScheduleUpdate, coordinator: Coordinator
) -> Any:
    current = coordinator.schedule_by_id(schedule_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    result = await coordinator.update_schedule(schedule_id, body.merge_into(current))
    if result is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return ScheduleWriteResult.from_result(result)


@router.delete("/{schedule_id}", status_code=204)
async def delete_schedule(schedule_id: uuid.UUID, coordinator: Coordinator) -> None:
    """Delete a schedule.  All dose events of its subject are deleted with it."""
    if not await coordinator.delete_schedule(schedule_id):
        raise HTTPException(status_code=404, detail="Schedule not found")
