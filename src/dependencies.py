"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.config import Settings, get_settings
from src.tracking.coordinator import TrackingCoordinator
from src.tracking.repositories.base import SubjectDirectory


def get_coordinator(request: Request) -> TrackingCoordinator:
    """Return the coordinator built at startup and stored on ``app.state``."""
    coordinator: TrackingCoordinator | None = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Tracking engine not initialized")
    return coordinator


def get_subject_directory(request: Request) -> SubjectDirectory:
    subjects: SubjectDirectory | None = getattr(request.app.state, "subjects", None)
    if subjects is None:
        raise HTTPException(status_code=503, detail="Subject directory not initialized")
    return subjects


# Annotated shortcuts for route signatures
Coordinator = Annotated[TrackingCoordinator, Depends(get_coordinator)]
Subjects = Annotated[SubjectDirectory, Depends(get_subject_directory)]
AppSettings = Annotated[Settings, Depends(get_settings)]
