"""Error taxonomy for the adherence tracking core.

Only two kinds of failure ever reach a caller of the coordinator:

- ``RepositoryFailure`` when a save/fetch/delete against a repository fails.
  The coordinator's in-memory snapshot is left exactly as it was.
- ``ComputationCancelled`` when a long analytics walk is cancelled.

Schedule validation problems are normalized away before they can surface,
and unknown ids are soft failures (``None`` / ``False`` return values).
"""

from __future__ import annotations


class TrackingError(Exception):
    """Base class for all tracking-core errors."""


class InvalidScheduleError(TrackingError, ValueError):
    """Raised when a ScheduleDefinition is constructed with broken invariants."""


class RepositoryFailure(TrackingError):
    """A repository call failed.

    Attributes:
        operation: Short description of what was being attempted
                   (e.g. ``"save schedule"``).
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Repository failure during {operation}{detail}")


class ComputationCancelled(TrackingError):
    """An analytics walk observed a cancelled CancellationToken."""
