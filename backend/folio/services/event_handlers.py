"""
事件处理器
订阅所有领域事件并写入日志，作为推送通道的接入点
处理器不写数据库
"""
from typing import Callable, List
import logging

from folio.models.events import EventType
from folio.services.event_bus import event_bus, Event

logger = logging.getLogger(__name__)


class EventHandlers:
    """
    事件处理器集合

    sinks: 额外的事件接收者（例如推送通道），便于测试注入
    """

    def __init__(self, sinks: List[Callable[[Event], None]] = None):
        self._sinks = list(sinks or [])
        self._registered = False

    def add_sink(self, sink: Callable[[Event], None]) -> None:
        self._sinks.append(sink)

    def handle_event(self, event: Event) -> None:
        """记录事件并转发给接收者"""
        data = event.data or {}
        logger.info(
            f"[{event.event_type}] from {event.source} "
            f"version={data.get('state_version')} id={event.event_id}"
        )
        for sink in self._sinks:
            sink(event)

    def handle_checked_out_balance(self, event: Event) -> None:
        """退房时余额未结清只记录警告"""
        balance = event.data.get('balance_minor', 0)
        if balance > 0:
            logger.warning(
                f"Guest {event.data.get('guest_name')} left room "
                f"{event.data.get('room_number')} with balance {balance}"
            )

    def register_handlers(self, event_bus_instance=None) -> None:
        """注册所有事件处理器"""
        if self._registered:
            logger.warning("Event handlers already registered")
            return

        bus = event_bus_instance or event_bus
        bus.subscribe(bus.WILDCARD, self.handle_event)
        bus.subscribe(EventType.GUEST_CHECKED_OUT, self.handle_checked_out_balance)

        self._registered = True
        logger.info("Event handlers registered successfully")

    def unregister_handlers(self, event_bus_instance=None) -> None:
        """取消注册所有事件处理器（用于测试）"""
        bus = event_bus_instance or event_bus

        bus.unsubscribe(bus.WILDCARD, self.handle_event)
        bus.unsubscribe(EventType.GUEST_CHECKED_OUT, self.handle_checked_out_balance)

        self._registered = False
        logger.info("Event handlers unregistered")


# 全局事件处理器实例
event_handlers = EventHandlers()


def register_event_handlers():
    """注册所有事件处理器（应用启动时调用）"""
    event_handlers.register_handlers()
