"""Repository interfaces and implementations for the tracking core.

Modules:
    base     — abstract repository interfaces consumed by the coordinator
    memory   — in-process implementations (tests, single-process deployments)
    postgres — asyncpg-backed implementations
"""

from src.tracking.repositories.base import (
    DoseEventRepository,
    HistoryRepository,
    ScheduleRepository,
    SubjectDirectory,
    SubjectRepository,
)
from src.tracking.repositories.memory import (
    InMemoryDoseEventRepository,
    InMemoryHistoryRepository,
    InMemoryScheduleRepository,
    InMemorySubjectRepository,
)

__all__ = [
    "SubjectRepository",
    "SubjectDirectory",
    "ScheduleRepository",
    "DoseEventRepository",
    "HistoryRepository",
    "InMemorySubjectRepository",
    "InMemoryScheduleRepository",
    "InMemoryDoseEventRepository",
    "InMemoryHistoryRepository",
]
