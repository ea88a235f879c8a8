"""
core/engine/event_bus.py

事件总线 - 内存级发布/订阅
生命周期事件在主操作提交后发布，处理器失败只记录日志，不影响主操作
"""
from typing import Callable, Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

EventHandler = Callable[["Event"], None]


def _generate_event_id() -> str:
    return f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}"


@dataclass
class Event:
    """
    事件

    Attributes:
        event_type: 事件类型（如 "booking.status_changed"）
        timestamp: 事件时间
        data: 事件数据
        source: 触发来源（服务名）
    """

    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str = ""
    event_id: str = field(default_factory=_generate_event_id)


@dataclass
class PublishResult:
    """单个事件的发布结果"""

    event_type: str
    subscriber_count: int
    success_count: int = 0
    failure_count: int = 0
    errors: List[Tuple[EventHandler, Exception]] = field(default_factory=list)


class EventBus:
    """
    事件总线（线程安全单例）

    使用方式：
    1. 订阅：event_bus.subscribe("booking.created", handler)
    2. 发布：event_bus.publish(Event(...))
    """

    _instance: Optional["EventBus"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "EventBus":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._subscribers: Dict[str, List[EventHandler]] = {}
        self._subscriber_lock = threading.RLock()
        self._initialized = True
        logger.info("EventBus initialized")

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """订阅事件，同一处理器不会重复注册"""
        with self._subscriber_lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.debug(f"Handler {_handler_name(handler)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """取消订阅"""
        with self._subscriber_lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> PublishResult:
        """
        发布事件（同步执行所有处理器）

        处理器异常被隔离：记录日志后继续执行其余处理器，
        调用方永远不会收到处理器抛出的异常。
        """
        with self._subscriber_lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        result = PublishResult(event_type=event.event_type, subscriber_count=len(handlers))

        for handler in handlers:
            try:
                handler(event)
                result.success_count += 1
            except Exception as e:
                result.failure_count += 1
                result.errors.append((handler, e))
                logger.error(
                    f"Event handler {_handler_name(handler)} error for {event.event_type}: {e}",
                    exc_info=True,
                )

        return result

    def clear(self) -> None:
        """清空订阅（用于测试）"""
        with self._subscriber_lock:
            self._subscribers.clear()


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", repr(handler))


# 全局事件总线实例
event_bus = EventBus()


__all__ = [
    "EventHandler",
    "Event",
    "PublishResult",
    "EventBus",
    "event_bus",
]
