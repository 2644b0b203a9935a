"""
事件总线
服务在事务提交之后发布领域事件，订阅者（日志、推送通道）据此同步状态
处理器同步执行，异常只记日志，不回滚已提交的数据
"""
from typing import Callable, Dict, List, Any
from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]


@dataclass
class Event:
    """领域事件"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str  # 发布方服务名
    event_id: str = field(default_factory=lambda: datetime.now().strftime("%Y%m%d%H%M%S%f"))


class EventBus:
    """
    进程内事件总线

    event_type 为 "*" 的订阅者接收所有事件，在精确订阅者之后调用
    """

    WILDCARD = "*"

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}
        self._guard = threading.Lock()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """订阅；同一处理器对同一事件类型只登记一次"""
        with self._guard:
            registered = self._handlers.setdefault(event_type, [])
            if handler in registered:
                return
            registered.append(handler)
        logger.info(f"{handler.__name__} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._guard:
            registered = self._handlers.get(event_type, [])
            if handler not in registered:
                return
            registered.remove(handler)
        logger.info(f"{handler.__name__} unsubscribed from {event_type}")

    def publish(self, event: Event) -> None:
        """按订阅顺序调用处理器；单个处理器失败不影响其它处理器"""
        with self._guard:
            targets = list(self._handlers.get(event.event_type, ()))
            if event.event_type != self.WILDCARD:
                targets += self._handlers.get(self.WILDCARD, ())

        for handler in targets:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"{handler.__name__} failed on {event.event_type} ({event.event_id}): {e}",
                    exc_info=True
                )


# 应用级事件总线
event_bus = EventBus()
