"""Tests for the event bus."""

from vr_sync_bridge.event_bus import EventBus, EventHandler, subscribe


class _Handler(EventHandler):
    def __init__(self, event_bus: EventBus) -> None:
        self.seen = []
        super().__init__(event_bus)

    @subscribe
    def check_feedbacks(self, data: dict) -> None:
        self.seen.append(data["__topic"])

    def not_subscribed(self, data: dict) -> None:
        self.seen.append("nope")


def test_decorated_methods_are_subscribed_by_name() -> None:
    bus = EventBus()
    handler = _Handler(bus)

    bus.publish("check_feedbacks")
    bus.publish("not_subscribed")

    assert handler.seen == ["check_feedbacks"]


def test_failing_listener_does_not_block_others() -> None:
    bus = EventBus()
    received = []

    def broken(_data):
        raise RuntimeError("boom")

    bus.subscribe("topic", broken)
    bus.subscribe("topic", received.append)
    bus.publish("topic", {"value": 1})

    assert received == [{"value": 1, "__topic": "topic"}]


def test_unsubscribe() -> None:
    bus = EventBus()
    received = []
    bus.subscribe("topic", received.append)
    bus.unsubscribe("topic", received.append)
    bus.publish("topic")
    assert received == []


def test_detach_removes_every_subscription() -> None:
    bus = EventBus()
    handler = _Handler(bus)
    assert bus.listener_count("check_feedbacks") == 1

    handler.detach()
    handler.detach()
    bus.publish("check_feedbacks")

    assert handler.seen == []
    assert bus.listener_count("check_feedbacks") == 0


def test_listener_may_unsubscribe_during_delivery() -> None:
    bus = EventBus()
    received = []

    def once(data):
        received.append("once")
        bus.unsubscribe("topic", once)

    bus.subscribe("topic", once)
    bus.subscribe("topic", lambda _data: received.append("always"))
    bus.publish("topic")
    bus.publish("topic")

    assert received == ["once", "always", "always"]
