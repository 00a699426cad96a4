"""Shared fixtures for tracking engine tests."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from uuid import UUID

import pytest

from src.tracking.base import DoseEvent, Frequency, ScheduleDefinition, Subject
from src.tracking.config_loader import TrackingConfig, load_tracking_config
from src.tracking.coordinator import TrackingCoordinator
from src.tracking.events import EventChannel
from src.tracking.repositories.memory import (
    InMemoryDoseEventRepository,
    InMemoryHistoryRepository,
    InMemoryScheduleRepository,
    InMemorySubjectRepository,
)

# Monday 2 March 2026, noon
TEST_DATE = date(2026, 3, 2)
TEST_NOW = datetime(2026, 3, 2, 12, 0)

METFORMIN = Subject(id=UUID("11111111-1111-1111-1111-111111111111"), name="Metformin")
LISINOPRIL = Subject(id=UUID("22222222-2222-2222-2222-222222222222"), name="Lisinopril")


class FixedClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime = TEST_NOW) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def make_schedule(
    subject: Subject = METFORMIN,
    frequency: Frequency = Frequency.daily,
    times: tuple[time, ...] = (time(9, 0),),
    start: date = TEST_DATE - timedelta(days=1),
    **kwargs,
) -> ScheduleDefinition:
    """Build a valid schedule with sensible defaults for tests."""
    return ScheduleDefinition(
        subject_id=subject.id,
        subject_name=subject.name,
        frequency=frequency,
        start_date=start,
        times_of_day=times,
        **kwargs,
    )


def make_dose(
    at: datetime,
    subject: Subject = METFORMIN,
    taken: bool = True,
    **kwargs,
) -> DoseEvent:
    return DoseEvent(
        subject_id=subject.id,
        subject_name=subject.name,
        timestamp=at,
        taken=taken,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tracking_config() -> TrackingConfig:
    """Load the real tracking config for tests."""
    return load_tracking_config()


# ---------------------------------------------------------------------------
# Repository / coordinator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def subject_repo() -> InMemorySubjectRepository:
    return InMemorySubjectRepository([METFORMIN, LISINOPRIL])


@pytest.fixture
def schedule_repo() -> InMemoryScheduleRepository:
    return InMemoryScheduleRepository()


@pytest.fixture
def dose_repo() -> InMemoryDoseEventRepository:
    return InMemoryDoseEventRepository()


@pytest.fixture
def history_repo() -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository()


@pytest.fixture
def channel() -> EventChannel:
    return EventChannel()


@pytest.fixture
def coordinator(
    subject_repo: InMemorySubjectRepository,
    schedule_repo: InMemoryScheduleRepository,
    dose_repo: InMemoryDoseEventRepository,
    history_repo: InMemoryHistoryRepository,
    tracking_config: TrackingConfig,
    clock: FixedClock,
    channel: EventChannel,
) -> TrackingCoordinator:
    return TrackingCoordinator(
        subject_repo,
        schedule_repo,
        dose_repo,
        history_repo,
        config=tracking_config,
        clock=clock,
        events=channel,
    )
