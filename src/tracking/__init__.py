"""Adhera Medication Adherence Tracking Engine.

This package owns medication schedules and recorded dose events, derives
"what is due" views from them, reconciles due slots against recorded
doses, and computes adherence statistics.

Subpackages:
    repositories/ — Storage interfaces plus in-memory and asyncpg implementations

Core modules:
    base          — Domain types (schedules, doses, slots, history, retention)
    errors        — TrackingError hierarchy
    config_loader — Load/validate/hot-reload tracking_config.yaml
    evaluator     — Pure due-time calculations for a schedule
    validation    — Draft-to-schedule normalization with correction log
    reconciler    — Slot-to-dose matching and status classification
    analytics     — Adherence rate, streak and cancellable summaries
    retention     — History retention policy
    events        — Typed change-notification channel
    coordinator   — Mutation pipeline, snapshots and derived views
"""

from src.tracking.base import (
    DoseEvent,
    DoseStatus,
    DueSlot,
    Frequency,
    HistoryRecord,
    ReconciledSlot,
    RetentionPeriod,
    ScheduleDefinition,
    ScheduleDraft,
    SlotStatus,
    Subject,
)
from src.tracking.config_loader import TrackingConfig, get_tracking_config
from src.tracking.coordinator import TrackingCoordinator
from src.tracking.errors import (
    ComputationCancelled,
    InvalidScheduleError,
    RepositoryFailure,
    TrackingError,
)

__all__ = [
    "Subject",
    "Frequency",
    "DoseStatus",
    "SlotStatus",
    "RetentionPeriod",
    "ScheduleDefinition",
    "ScheduleDraft",
    "DoseEvent",
    "DueSlot",
    "ReconciledSlot",
    "HistoryRecord",
    "TrackingConfig",
    "get_tracking_config",
    "TrackingCoordinator",
    "TrackingError",
    "InvalidScheduleError",
    "RepositoryFailure",
    "ComputationCancelled",
]
