"""Endpoints for recording, correcting and removing dose events."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import Coordinator
from src.models.tracking import DoseCreate, DoseRead, DoseUpdate
from src.tracking.base import DoseEvent

router = APIRouter(prefix="/doses", tags=["doses"])

NULLABLE_DOSE_FIELDS = {"skipped_reason", "notes"}


@router.get("", response_model=list[DoseRead])
async def list_doses(
    coordinator: Coordinator,
    subject_id: uuid.UUID | None = Query(default=None),
    days: int = Query(default=30, ge=1, le=3650),
) -> Any:
    """Doses from the last ``days`` days, newest first."""
    end = coordinator.now()
    start = end - timedelta(days=days)
    if subject_id is not None:
        doses = coordinator.doses_for_subject(subject_id, start, end)
    else:
        doses = sorted(
            (d for d in coordinator.doses if start <= d.timestamp <= end),
            key=lambda d: d.timestamp,
            reverse=True,
        )
    return [DoseRead.model_validate(d) for d in doses]


@router.post("", response_model=DoseRead, status_code=201)
async def record_dose(body: DoseCreate, coordinator: Coordinator) -> Any:
    event = DoseEvent(**body.model_dump())
    return DoseRead.model_validate(await coordinator.record_dose(event))


@router.patch("/{dose_id}", response_model=DoseRead)
async def update_dose(dose_id: uuid.UUID, body: DoseUpdate, coordinator: Coordinator) -> Any:
    current = coordinator.dose_by_id(dose_id)
    if current is None:
        raise HTTPException(status_code=404, detail="Dose not found")
    changes = {
        key: value
        for key, value in body.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_DOSE_FIELDS
    }
    updated = await coordinator.update_dose(replace(current, **changes))
    if updated is None:
        raise HTTPException(status_code=404, detail="Dose not found")
    return DoseRead.model_validate(updated)


@router.delete("/{dose_id}", status_code=204)
async def delete_dose(dose_id: uuid.UUID, coordinator: Coordinator) -> None:
    if not await coordinator.delete_dose(dose_id):
        raise HTTPException(status_code=404, detail="Dose not found")
