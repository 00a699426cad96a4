"""Shared fixtures for HTTP API tests.

The app is built with ``create_app()`` and exercised through ``TestClient``
without entering its lifespan; the coordinator and subject directory that
the lifespan would build are placed on ``app.state`` directly.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.main import create_app
from src.tracking.base import Subject
from src.tracking.config_loader import load_tracking_config
from src.tracking.coordinator import TrackingCoordinator
from src.tracking.repositories.memory import (
    InMemoryDoseEventRepository,
    InMemoryHistoryRepository,
    InMemoryScheduleRepository,
    InMemorySubjectRepository,
)

# Monday 2 March 2026, noon
API_NOW = datetime(2026, 3, 2, 12, 0)

ASPIRIN = Subject(id=UUID("33333333-3333-3333-3333-333333333333"), name="Aspirin")


@pytest.fixture
def subject_store() -> InMemorySubjectRepository:
    return InMemorySubjectRepository([ASPIRIN])


@pytest.fixture
def api_coordinator(subject_store: InMemorySubjectRepository) -> TrackingCoordinator:
    return TrackingCoordinator(
        subject_store,
        InMemoryScheduleRepository(),
        InMemoryDoseEventRepository(),
        InMemoryHistoryRepository(),
        config=load_tracking_config(),
        clock=lambda: API_NOW,
    )


@pytest.fixture
def app(
    api_coordinator: TrackingCoordinator, subject_store: InMemorySubjectRepository
) -> FastAPI:
    application = create_app()
    application.state.pool = None
    application.state.coordinator = api_coordinator
    application.state.subjects = subject_store
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
