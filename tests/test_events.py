"""Unit tests for :mod:`cartostyle.ui.events`."""

from __future__ import annotations

import gc
import logging
from dataclasses import dataclass

import pytest

from cartostyle.ui.events import (
    Event,
    EventBus,
    SchemaUpdated,
    StateChanged,
    StyleCommitted,
    StyleRejected,
)
from cartostyle.ui.state import EditorState


@dataclass(slots=True)
class SampleEvent(Event):
    """A sample event for testing."""

    message: str
    value: int = 0


@dataclass(slots=True)
class AnotherEvent(Event):
    """Another event type for testing isolation."""

    data: str


class TestEventBusSubscription:
    """Tests for EventBus subscription functionality."""

    def test_subscribe_same_handler_twice(self) -> None:
        """Subscribing the same handler twice results in two registrations."""
        bus: EventBus[Event] = EventBus()

        def handler(event: SampleEvent) -> None:
            pass

        bus.subscribe(SampleEvent, handler)
        bus.subscribe(SampleEvent, handler)
        assert bus.handler_count(SampleEvent) == 2

    def test_subscribe_different_event_types(self) -> None:
        """Handlers for different event types are tracked separately."""
        bus: EventBus[Event] = EventBus()

        bus.subscribe(SampleEvent, lambda e: None)
        bus.subscribe(AnotherEvent, lambda e: None)

        assert bus.handler_count(SampleEvent) == 1
        assert bus.handler_count(AnotherEvent) == 1
        assert bus.handler_count() == 2

    def test_unsubscribe_one_of_duplicate_handlers(self) -> None:
        """unsubscribe removes only one occurrence of duplicate handlers."""
        bus: EventBus[Event] = EventBus()

        def handler(event: SampleEvent) -> None:
            pass

        bus.subscribe(SampleEvent, handler)
        bus.subscribe(SampleEvent, handler)
        bus.unsubscribe(SampleEvent, handler)
        assert bus.handler_count(SampleEvent) == 1

    def test_unsubscribe_unknown_handler_is_safe(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.unsubscribe(SampleEvent, lambda e: None)

        assert bus.handler_count() == 0


class TestEventBusPublish:
    """Tests for EventBus publish functionality."""

    def test_publish_invokes_handlers_in_order(self) -> None:
        bus: EventBus[Event] = EventBus()
        order: list[int] = []

        bus.subscribe(SampleEvent, lambda e: order.append(1))
        bus.subscribe(SampleEvent, lambda e: order.append(2))
        bus.subscribe(AnotherEvent, lambda e: order.append(99))

        bus.publish(SampleEvent(message="test"))

        assert order == [1, 2]

    def test_publish_continues_after_handler_exception(self) -> None:
        """publish continues invoking handlers even after one raises."""
        bus: EventBus[Event] = EventBus()
        received: list[int] = []

        def failing(event: SampleEvent) -> None:
            raise ValueError("boom")

        bus.subscribe(SampleEvent, lambda e: received.append(1))
        bus.subscribe(SampleEvent, failing)
        bus.subscribe(SampleEvent, lambda e: received.append(3))

        bus.publish(SampleEvent(message="test"))

        assert received == [1, 3]

    def test_bound_method_handler_cleaned_up_on_gc(self) -> None:
        """Bound method handlers are dropped once their owner is collected."""
        bus: EventBus[Event] = EventBus()
        received: list[SampleEvent] = []

        class Subscriber:
            def handle(self, event: SampleEvent) -> None:
                received.append(event)

        subscriber = Subscriber()
        bus.subscribe(SampleEvent, subscriber.handle)
        bus.publish(SampleEvent(message="before gc"))

        del subscriber
        gc.collect()
        bus.publish(SampleEvent(message="after gc"))

        assert len(received) == 1
        assert bus.handler_count(SampleEvent) == 0

    def test_state_changed_is_published_quietly(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus[Event] = EventBus()
        bus.subscribe(StateChanged, lambda e: None)

        with caplog.at_level(logging.DEBUG, logger="cartostyle.ui.events"):
            bus.publish(StateChanged(state=EditorState()))
            bus.publish(StyleRejected(errors=("bad",)))

        assert "Publishing StateChanged" not in caplog.text
        assert "No handlers for event type StyleRejected" in caplog.text


class TestEditorEvents:
    def test_style_committed_round_trips_through_bus(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[StyleCommitted] = []
        bus.subscribe(StyleCommitted, received.append)

        bus.publish(StyleCommitted(document={"version": 8}, revision_count=3))

        assert received[0].revision_count == 3
        assert received[0].document == {"version": 8}

    def test_schema_updated_fields(self) -> None:
        event = SchemaUpdated(field_name="glyphs", values=("Open Sans Regular",))

        assert event.field_name == "glyphs"
        assert event.values == ("Open Sans Regular",)
