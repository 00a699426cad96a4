"""Typed internal event channel for tracking-core notifications.

Consumers (notification scheduling, caches, UI bridges) subscribe to
specific events.  Handlers run synchronously, in subscription order, after
the coordinator has installed its new snapshot.  A handler that raises is
logged and skipped; later handlers still run and the publishing mutation is
not affected.

Usage::

    channel = EventChannel()
    channel.subscribe(TrackingEvent.subject_deleted, lambda payload: ...)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
from uuid import UUID

logger = logging.getLogger("adhera.tracking.events")


class TrackingEvent(str, Enum):
    data_changed = "data_changed"
    subject_deleted = "subject_deleted"
    all_subjects_deleted = "all_subjects_deleted"
    history_pruned = "history_pruned"


@dataclass(frozen=True)
class EventPayload:
    """What happened, and to whom.

    Attributes:
        event:      The event type.
        reason:     Name of the coordinator operation that published it.
        subject_id: Affected subject, when the event concerns one.
        extra:      Operation-specific details (e.g. pruned record count).
    """

    event: TrackingEvent
    reason: str
    subject_id: UUID | None = None
    extra: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[EventPayload], None]


class EventChannel:
    """Ordered publish/subscribe channel keyed by TrackingEvent."""

    def __init__(self) -> None:
        self._subscribers: dict[TrackingEvent, list[Handler]] = defaultdict(list)

    def subscribe(self, event: TrackingEvent, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event``.

        Returns:
            A callable that removes the subscription.
        """
        self._subscribers[event].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers[event]
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, payload: EventPayload) -> None:
        for handler in list(self._subscribers[payload.event]):
            try:
                handler(payload)
            except Exception:
                logger.exception(
                    "Subscriber %r failed handling %s", handler, payload.event.value
                )
