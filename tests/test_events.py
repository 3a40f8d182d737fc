"""Unit tests for :mod:`clearwrite.events`."""

from __future__ import annotations

import gc
from dataclasses import dataclass

from clearwrite.events import (
    CheckCompleted,
    CorrectionApplied,
    CorrectionSkipped,
    Event,
    EventBus,
    FindingsReplaced,
    SummaryUpdated,
)
from clearwrite.overlay.engine import OverlayState


@dataclass(slots=True)
class SampleEvent(Event):
    """A sample event for testing."""

    message: str
    value: int = 0


class TestEventBusSubscription:
    """Tests for EventBus subscription functionality."""

    def test_subscribe_adds_handler(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.subscribe(SampleEvent, lambda event: None)

        assert bus.handler_count(SampleEvent) == 1

    def test_subscribe_different_event_types(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.subscribe(SampleEvent, lambda event: None)
        bus.subscribe(CorrectionApplied, lambda event: None)

        assert bus.handler_count(SampleEvent) == 1
        assert bus.handler_count(CorrectionApplied) == 1
        assert bus.handler_count() == 2

    def test_unsubscribe_removes_one_registration(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[SampleEvent] = []

        def handler(event: SampleEvent) -> None:
            received.append(event)

        bus.subscribe(SampleEvent, handler)
        bus.subscribe(SampleEvent, handler)
        bus.unsubscribe(SampleEvent, handler)
        bus.publish(SampleEvent(message="once"))

        assert len(received) == 1

    def test_unsubscribe_unknown_handler_is_safe(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.unsubscribe(SampleEvent, lambda event: None)

        assert bus.handler_count() == 0


class TestEventBusPublish:
    """Tests for EventBus delivery."""

    def test_publish_invokes_handlers_in_order(self) -> None:
        bus: EventBus[Event] = EventBus()
        order: list[str] = []

        bus.subscribe(SampleEvent, lambda event: order.append("first"))
        bus.subscribe(SampleEvent, lambda event: order.append("second"))
        bus.publish(SampleEvent(message="go"))

        assert order == ["first", "second"]

    def test_publish_only_matching_type(self) -> None:
        bus: EventBus[Event] = EventBus()
        skipped: list[CorrectionSkipped] = []
        bus.subscribe(CorrectionSkipped, skipped.append)

        bus.publish(CorrectionApplied("0-R-0", "x", 1, 2))
        bus.publish(CorrectionSkipped("0-R-0", "unresolved"))

        assert skipped == [CorrectionSkipped("0-R-0", "unresolved")]

    def test_publish_without_handlers_is_safe(self) -> None:
        bus: EventBus[Event] = EventBus()

        bus.publish(FindingsReplaced(document_id="doc", finding_count=0))
        bus.publish(SummaryUpdated(document_id="doc", version_id=1, items=(), state=OverlayState.EMPTY))

    def test_publish_continues_after_handler_exception(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[CheckCompleted] = []

        def broken(event: CheckCompleted) -> None:
            raise RuntimeError("handler failure")

        bus.subscribe(CheckCompleted, broken)
        bus.subscribe(CheckCompleted, received.append)
        bus.publish(CheckCompleted(document_id="doc", version_id=3, finding_count=2, elapsed_ms=1.5))

        assert len(received) == 1


class TestEventBusWeakReferences:
    """Bound methods are held weakly, plain functions strongly."""

    def test_bound_method_handler_cleaned_up_on_gc(self) -> None:
        bus: EventBus[Event] = EventBus()

        class Listener:
            def __init__(self) -> None:
                self.received: list[SampleEvent] = []

            def on_event(self, event: SampleEvent) -> None:
                self.received.append(event)

        listener = Listener()
        bus.subscribe(SampleEvent, listener.on_event)
        bus.publish(SampleEvent(message="alive"))
        assert len(listener.received) == 1

        del listener
        gc.collect()
        bus.publish(SampleEvent(message="gone"))

        assert bus.handler_count(SampleEvent) == 0

    def test_function_handler_survives_gc(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[SampleEvent] = []
        bus.subscribe(SampleEvent, lambda event: received.append(event))

        gc.collect()
        bus.publish(SampleEvent(message="still here"))

        assert len(received) == 1

    def test_clear_removes_all_handlers(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.subscribe(SampleEvent, lambda event: None)
        bus.subscribe(CorrectionApplied, lambda event: None)

        bus.clear()

        assert bus.handler_count() == 0
