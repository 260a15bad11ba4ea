# tests/core/test_events.py
"""Tests for EventBus infrastructure."""

from dataclasses import dataclass

import pytest

from flowswap.contracts.events import DrainForced
from flowswap.core.events import EventBus, EventBusProtocol, NullEventBus


@dataclass(frozen=True)
class SampleEvent:
    value: str


@dataclass(frozen=True)
class DerivedEvent(SampleEvent):
    pass


class TestEventBus:
    """Tests for EventBus implementation."""

    def test_subscribe_and_emit(self) -> None:
        bus = EventBus()
        received: list[SampleEvent] = []

        bus.subscribe(SampleEvent, received.append)
        bus.emit(SampleEvent(value="hello"))

        assert received == [SampleEvent(value="hello")]

    def test_handlers_called_in_subscription_order(self) -> None:
        bus = EventBus()
        order: list[str] = []

        bus.subscribe(SampleEvent, lambda e: order.append("first"))
        bus.subscribe(SampleEvent, lambda e: order.append("second"))
        bus.emit(SampleEvent(value="x"))

        assert order == ["first", "second"]

    def test_dispatch_is_by_exact_type(self) -> None:
        """Subscribing to a base class does not receive subclass events."""
        bus = EventBus()
        received: list[SampleEvent] = []

        bus.subscribe(SampleEvent, received.append)
        bus.emit(DerivedEvent(value="derived"))

        assert received == []

    def test_emit_without_subscribers_is_ignored(self) -> None:
        EventBus().emit(DrainForced(polls=61, request_id="abc"))

    def test_handler_exception_propagates(self) -> None:
        bus = EventBus()

        def handler(event: SampleEvent) -> None:
            raise RuntimeError("handler bug")

        bus.subscribe(SampleEvent, handler)

        with pytest.raises(RuntimeError, match="handler bug"):
            bus.emit(SampleEvent(value="x"))


class TestNullEventBus:
    def test_subscribe_and_emit_are_no_ops(self) -> None:
        bus = NullEventBus()
        received: list[SampleEvent] = []

        bus.subscribe(SampleEvent, received.append)
        bus.emit(SampleEvent(value="x"))

        assert received == []

    def test_not_a_subclass_of_event_bus(self) -> None:
        assert not isinstance(NullEventBus(), EventBus)

    @pytest.mark.parametrize("bus", [EventBus(), NullEventBus()])
    def test_satisfies_protocol(self, bus: EventBusProtocol) -> None:
        assert callable(bus.subscribe)
        assert callable(bus.emit)
