"""Tests for the tracking event channel."""

from __future__ import annotations

from uuid import uuid4

from src.tracking.events import EventChannel, EventPayload, TrackingEvent


def _payload(event: TrackingEvent = TrackingEvent.data_changed) -> EventPayload:
    return EventPayload(event=event, reason="test")


class TestEventChannel:
    def test_handlers_run_in_subscription_order(self) -> None:
        channel = EventChannel()
        calls: list[str] = []
        channel.subscribe(TrackingEvent.data_changed, lambda p: calls.append("first"))
        channel.subscribe(TrackingEvent.data_changed, lambda p: calls.append("second"))

        channel.publish(_payload())

        assert calls == ["first", "second"]

    def test_only_matching_event_delivered(self) -> None:
        channel = EventChannel()
        seen: list[EventPayload] = []
        channel.subscribe(TrackingEvent.subject_deleted, seen.append)

        channel.publish(_payload(TrackingEvent.data_changed))
        deleted = EventPayload(
            event=TrackingEvent.subject_deleted, reason="test", subject_id=uuid4()
        )
        channel.publish(deleted)

        assert seen == [deleted]

    def test_failing_handler_does_not_stop_others(self, caplog) -> None:
        channel = EventChannel()
        calls: list[str] = []

        def broken(payload: EventPayload) -> None:
            raise RuntimeError("boom")

        channel.subscribe(TrackingEvent.data_changed, broken)
        channel.subscribe(TrackingEvent.data_changed, lambda p: calls.append("after"))

        channel.publish(_payload())

        assert calls == ["after"]
        assert "failed handling data_changed" in caplog.text

    def test_unsubscribe(self) -> None:
        channel = EventChannel()
        calls: list[EventPayload] = []
        unsubscribe = channel.subscribe(TrackingEvent.data_changed, calls.append)

        unsubscribe()
        unsubscribe()  # second call is harmless
        channel.publish(_payload())

        assert calls == []
