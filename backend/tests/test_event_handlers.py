"""
事件处理器单元测试
"""
import logging
import pytest
from datetime import datetime

from folio.models.events import EventType
from folio.services.event_bus import Event, EventBus
from folio.services.event_handlers import EventHandlers


def _checked_out(balance_minor):
    return Event(
        event_type=EventType.GUEST_CHECKED_OUT,
        timestamp=datetime.now(),
        data={
            "state_version": 4,
            "guest_id": 1,
            "guest_name": "Ada Obi",
            "room_id": 1,
            "room_number": "101",
            "balance_minor": balance_minor,
        },
        source="folio_service"
    )


class TestEventHandlers:
    """事件处理器测试"""

    @pytest.fixture
    def bus(self):
        return EventBus()

    @pytest.fixture
    def sink(self):
        return []

    @pytest.fixture
    def handlers(self, bus, sink):
        handlers = EventHandlers(sinks=[sink.append])
        handlers.register_handlers(bus)
        yield handlers
        handlers.unregister_handlers(bus)

    def test_forwards_every_event_to_sinks(self, bus, handlers, sink):
        bus.publish(_checked_out(0))
        bus.publish(Event(
            event_type=EventType.STATE_CLEARED,
            timestamp=datetime.now(),
            data={"state_version": 5},
            source="folio_service"
        ))

        assert [e.event_type for e in sink] == [
            EventType.GUEST_CHECKED_OUT, EventType.STATE_CLEARED
        ]

    def test_outstanding_balance_logged(self, handlers, caplog):
        with caplog.at_level(logging.WARNING, logger="folio.services.event_handlers"):
            handlers.handle_checked_out_balance(_checked_out(2150000))
        assert "balance 2150000" in caplog.text

    def test_settled_balance_not_logged(self, handlers, caplog):
        with caplog.at_level(logging.WARNING, logger="folio.services.event_handlers"):
            handlers.handle_checked_out_balance(_checked_out(0))
        assert caplog.text == ""

    def test_register_twice_is_noop(self, bus, handlers, sink):
        handlers.register_handlers(bus)
        bus.publish(_checked_out(0))
        assert len(sink) == 1

    def test_unregister(self, bus, handlers, sink):
        handlers.unregister_handlers(bus)
        bus.publish(_checked_out(0))
        assert sink == []

    def test_sink_failure_isolated(self, bus, sink):
        def broken(event):
            raise RuntimeError("push channel down")

        handlers = EventHandlers(sinks=[broken])
        handlers.add_sink(sink.append)
        handlers.register_handlers(bus)
        try:
            # 处理器异常由事件总线记录，不向发布方抛出
            bus.publish(_checked_out(0))
        finally:
            handlers.unregister_handlers(bus)
        assert sink == []
