"""
事件总线单元测试
"""
import logging
import pytest
from datetime import datetime

from folio.models.events import EventType, TransactionData
from folio.services.event_bus import EventBus, Event


def _event(event_type=EventType.TRANSACTION_POSTED, **data):
    return Event(event_type=event_type, timestamp=datetime.now(), data=data, source="test")


class TestEventBus:
    """事件总线测试"""

    @pytest.fixture
    def event_bus(self):
        return EventBus()

    def test_subscribe_and_publish(self, event_bus):
        received = []

        def on_posted(event):
            received.append(event)

        event_bus.subscribe(EventType.TRANSACTION_POSTED, on_posted)
        event_bus.publish(_event(**TransactionData(transaction_id=7, amount_minor=750).to_dict()))

        assert len(received) == 1
        assert received[0].data["transaction_id"] == 7
        assert received[0].data["amount_minor"] == 750

    def test_other_event_types_not_delivered(self, event_bus):
        received = []
        event_bus.subscribe(EventType.GUEST_MOVED, received.append)

        event_bus.publish(_event())

        assert received == []

    def test_wildcard_receives_everything_after_exact(self, event_bus):
        received = []

        def on_any(event):
            received.append(("any", event.event_type))

        def on_checked_in(event):
            received.append(("exact", event.event_type))

        event_bus.subscribe(event_bus.WILDCARD, on_any)
        event_bus.subscribe(EventType.GUEST_CHECKED_IN, on_checked_in)
        event_bus.publish(_event(EventType.GUEST_CHECKED_IN))
        event_bus.publish(_event(EventType.STATE_CLEARED))

        assert received == [
            ("exact", EventType.GUEST_CHECKED_IN),
            ("any", EventType.GUEST_CHECKED_IN),
            ("any", EventType.STATE_CLEARED),
        ]

    def test_unsubscribe(self, event_bus):
        received = []

        def on_posted(event):
            received.append(event)

        event_bus.subscribe(EventType.TRANSACTION_POSTED, on_posted)
        event_bus.unsubscribe(EventType.TRANSACTION_POSTED, on_posted)
        event_bus.unsubscribe(EventType.TRANSACTION_POSTED, on_posted)
        event_bus.publish(_event())

        assert received == []

    def test_handler_exception_isolation(self, event_bus, caplog):
        """处理器异常不影响其它处理器"""
        received = []

        def failing_handler(event):
            raise ValueError("sink offline")

        def successful_handler(event):
            received.append(event)

        event_bus.subscribe(EventType.TRANSACTION_POSTED, failing_handler)
        event_bus.subscribe(EventType.TRANSACTION_POSTED, successful_handler)

        with caplog.at_level(logging.ERROR, logger="folio.services.event_bus"):
            event_bus.publish(_event())

        assert len(received) == 1
        assert "failing_handler failed" in caplog.text

    def test_duplicate_subscription(self, event_bus):
        calls = [0]

        def handler(event):
            calls[0] += 1

        event_bus.subscribe(EventType.TRANSACTION_POSTED, handler)
        event_bus.subscribe(EventType.TRANSACTION_POSTED, handler)
        event_bus.publish(_event())

        assert calls[0] == 1

    def test_buses_are_independent(self):
        received = []
        first, second = EventBus(), EventBus()
        first.subscribe(EventType.TRANSACTION_POSTED, received.append)

        second.publish(_event())

        assert received == []
