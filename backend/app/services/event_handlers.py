"""
事件处理器
订阅预订生命周期事件并写入站内通知
"""
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple
import logging

from app.database import SessionLocal
from app.models.events import EventType
from app.models.ontology import NotificationRole
from core.engine.event_bus import event_bus, Event

logger = logging.getLogger(__name__)


def _date_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return datetime.fromisoformat(value).strftime("%a %b %d %Y")


# 状态 -> (标题, 消息模板)
STATUS_NOTIFICATIONS: Dict[str, Tuple[str, str]] = {
    "cancelled": ("Booking Cancelled", "Your booking for room {room_id} has been cancelled."),
    "checked-in": ("Checked In", "You have checked in to room {room_id}."),
    "checked-out": ("Checked Out", "You have checked out from room {room_id}."),
}

PAYMENT_NOTIFICATIONS: Dict[str, Tuple[str, str]] = {
    "paid": ("Payment Successful", "Payment for booking {booking_id} was successful."),
    "failed": ("Payment Failed", "Payment for booking {booking_id} failed."),
}

ID_VERIFICATION_NOTIFICATIONS: Dict[str, Tuple[str, str]] = {
    "approved": ("ID Verified", "Your ID for booking {booking_id} has been approved."),
    "rejected": ("ID Rejected",
                 "Your ID for booking {booking_id} was rejected. Please upload a new document."),
}

SERVICE_BOOKING_NOTIFICATIONS: Dict[str, Tuple[str, str]] = {
    "confirmed": ("Service Booking Confirmed", "Your {service_name} booking is confirmed."),
    "cancelled": ("Service Booking Cancelled", "Your {service_name} booking has been cancelled."),
}


class EventHandlers:
    """
    事件处理器集合

    支持依赖注入以便于测试：
    - db_session_factory: 数据库会话工厂
    """

    def __init__(self, db_session_factory: Callable = None):
        self._db_session_factory = db_session_factory or SessionLocal
        self._registered = False

    def _notify(self, title: str, message: str, user_id: Optional[int] = None,
                role: NotificationRole = NotificationRole.USER) -> None:
        from app.services.notification_service import NotificationService

        db = self._db_session_factory()
        try:
            NotificationService(db).notify(title, message, user_id=user_id, role=role)
        finally:
            db.close()

    def handle_booking_created(self, event: Event) -> None:
        data = event.data
        self._notify(
            "Booking Confirmed",
            f"Your booking for room {data.get('room_id')} is confirmed from "
            f"{_date_text(data.get('check_in'))} to {_date_text(data.get('check_out'))}.",
            user_id=data.get("user_id"),
        )

    def handle_booking_status_changed(self, event: Event) -> None:
        data = event.data
        template = STATUS_NOTIFICATIONS.get(data.get("new_status"))
        if not template:
            return
        title, message = template
        self._notify(title, message.format(**data), user_id=data.get("user_id"))

    def handle_payment_status_changed(self, event: Event) -> None:
        data = event.data
        template = PAYMENT_NOTIFICATIONS.get(data.get("new_status"))
        if not template or data.get("old_status") == data.get("new_status"):
            return
        title, message = template
        self._notify(title, message.format(**data), user_id=data.get("user_id"))

    def handle_id_proof_submitted(self, event: Event) -> None:
        data = event.data
        self._notify(
            "ID Proof Submitted",
            f"Booking {data.get('booking_id')} has a new {data.get('id_type')} "
            f"awaiting verification.",
            role=NotificationRole.ADMIN,
        )

    def handle_id_verification_changed(self, event: Event) -> None:
        data = event.data
        template = ID_VERIFICATION_NOTIFICATIONS.get(data.get("new_status"))
        if not template:
            return
        title, message = template
        self._notify(title, message.format(**data), user_id=data.get("user_id"))

    def handle_service_booking_created(self, event: Event) -> None:
        data = event.data
        self._notify(
            "New Service Booking",
            f"{data.get('guest_name')} requested {data.get('service_name')}.",
            role=NotificationRole.ADMIN,
        )

    def handle_service_booking_status_changed(self, event: Event) -> None:
        data = event.data
        template = SERVICE_BOOKING_NOTIFICATIONS.get(data.get("new_status"))
        if not template or not data.get("user_id"):
            return
        title, message = template
        self._notify(title, message.format(**data), user_id=data.get("user_id"))

    def _bindings(self):
        return [
            (EventType.BOOKING_CREATED, self.handle_booking_created),
            (EventType.BOOKING_STATUS_CHANGED, self.handle_booking_status_changed),
            (EventType.BOOKING_PAYMENT_STATUS_CHANGED, self.handle_payment_status_changed),
            (EventType.BOOKING_ID_PROOF_SUBMITTED, self.handle_id_proof_submitted),
            (EventType.BOOKING_ID_VERIFICATION_CHANGED, self.handle_id_verification_changed),
            (EventType.SERVICE_BOOKING_CREATED, self.handle_service_booking_created),
            (EventType.SERVICE_BOOKING_STATUS_CHANGED, self.handle_service_booking_status_changed),
        ]

    def register_handlers(self, event_bus_instance=None) -> None:
        """注册所有事件处理器"""
        if self._registered:
            logger.debug("Event handlers already registered")
            return

        bus = event_bus_instance or event_bus
        for event_type, handler in self._bindings():
            bus.subscribe(event_type, handler)

        self._registered = True
        logger.info("Event handlers registered successfully")

    def unregister_handlers(self, event_bus_instance=None) -> None:
        """取消注册所有事件处理器（用于测试）"""
        bus = event_bus_instance or event_bus
        for event_type, handler in self._bindings():
            bus.unsubscribe(event_type, handler)

        self._registered = False
        logger.info("Event handlers unregistered")


# 全局事件处理器实例
event_handlers = EventHandlers()


def register_event_handlers(db_session_factory: Callable = None) -> EventHandlers:
    """注册所有事件处理器（应用启动时调用）"""
    global event_handlers
    if db_session_factory is not None:
        event_handlers.unregister_handlers()
        event_handlers = EventHandlers(db_session_factory)
    event_handlers.register_handlers()
    return event_handlers
