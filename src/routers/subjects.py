"""Subject directory endpoints and subject-level tracking cleanup."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import Coordinator, Subjects
from src.models.tracking import SubjectCreate, SubjectRead
from src.tracking.base import Subject

router = APIRouter(prefix="/subjects", tags=["subjects"])


@router.get("", response_model=list[SubjectRead])
async def list_subjects(subjects: Subjects) -> Any:
    stored = sorted(await subjects.fetch_all(), key=lambda s: s.name)
    return [SubjectRead.model_validate(s) for s in stored]


@router.post("", response_model=SubjectRead, status_code=201)
async def create_subject(body: SubjectCreate, subjects: Subjects, coordinator: Coordinator) -> Any:
    subject = Subject(id=body.id or uuid.uuid4(), name=body.name)
    await subjects.save(subject)
    await coordinator.refresh_subjects()
    return SubjectRead.model_validate(subject)


# Static paths are registered before /{subject_id} so they are matched first.

@router.delete("/tracking", status_code=204)
async def delete_all_tracking(coordinator: Coordinator) -> None:
    """Remove every schedule, dose and history record; subjects are kept."""
    await coordinator.on_all_subjects_deleted()
    await coordinator.refresh_subjects()


@router.delete("/{subject_id}/tracking", status_code=204)
async def delete_subject_tracking(subject_id: uuid.UUID, coordinator: Coordinator) -> None:
    """Remove a subject's schedules, doses and history; the subject is kept."""
    await coordinator.on_subject_deleted(subject_id)
    await coordinator.refresh_subjects()


@router.delete("", status_code=204)
async def delete_all_subjects(subjects: Subjects, coordinator: Coordinator) -> None:
    await subjects.delete_all()
    await coordinator.on_all_subjects_deleted()


@router.delete("/{subject_id}", status_code=204)
async def delete_subject(subject_id: uuid.UUID, subjects: Subjects, coordinator: Coordinator) -> None:
    if await subjects.fetch_by_id(subject_id) is None:
        raise HTTPException(status_code=404, detail="Subject not found")
    await subjects.delete(subject_id)
    await coordinator.on_subject_deleted(subject_id)
