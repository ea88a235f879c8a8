"""
服务预订服务
酒店服务（SPA、餐饮等）的预约：用户创建后为 pending，由管理员确认或取消
"""
from typing import Callable, List, Optional
from datetime import datetime
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.ontology import Service, ServiceBooking, ServiceBookingStatus, User
from app.models.schemas import ServiceBookingCreate
from app.models.events import EventType, ServiceBookingCreatedData, ServiceBookingStatusChangedData
from app.security import policy
from core.engine.event_bus import event_bus, Event
from core.errors import ValidationError, NotFoundError, ConflictError, DependencyError

logger = logging.getLogger(__name__)

SERVICE_BOOKING_STATUS_VALUES = {s.value for s in ServiceBookingStatus}


class ServiceBookingService:
    """服务预订服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def get_service_booking(self, service_booking_id: int) -> Optional[ServiceBooking]:
        return self.db.query(ServiceBooking).filter(
            ServiceBooking.id == service_booking_id
        ).first()

    def get_service_booking_for(self, service_booking_id: int, actor: User,
                                field: str = policy.READ) -> ServiceBooking:
        booking = self.get_service_booking(service_booking_id)
        if not booking:
            raise NotFoundError("Service booking not found",
                                context={"service_booking_id": service_booking_id})
        policy.ensure_can_mutate(actor, booking, field)
        return booking

    def list_user_service_bookings(self, user_id: int) -> List[ServiceBooking]:
        return self.db.query(ServiceBooking).filter(
            ServiceBooking.user_id == user_id
        ).order_by(ServiceBooking.date.desc()).all()

    def list_service_bookings(self) -> List[ServiceBooking]:
        return self.db.query(ServiceBooking).order_by(
            ServiceBooking.created_at.desc(), ServiceBooking.id.desc()
        ).all()

    def create_service_booking(self, data: ServiceBookingCreate, actor: User) -> ServiceBooking:
        """
        创建服务预订
        状态只能由管理员设置，新预订一律为 pending
        """
        if data.status is not None:
            raise ValidationError(
                "Status cannot be set by user. All bookings start as pending "
                "and require admin approval."
            )

        service = self.db.query(Service).filter(Service.id == data.service_id).first()
        if not service:
            raise NotFoundError("Service not found", context={"service_id": data.service_id})

        booking = ServiceBooking(
            service_id=service.id,
            service_name=service.name,
            category=service.category,
            price_range=service.price_range or "",
            date=data.date,
            time=data.time,
            guests=data.guests,
            user_id=actor.id,
            guest_name=data.guest_name,
            guest_email=data.guest_email,
            guest_phone=data.guest_phone or "",
            special_requests=data.special_requests or "",
            total_price=data.total_price,
            status=ServiceBookingStatus.PENDING,
        )
        self.db.add(booking)
        self._commit(booking)
        logger.info(f"Service booking {booking.id} created for service {service.id}")

        self._publish(EventType.SERVICE_BOOKING_CREATED, ServiceBookingCreatedData(
            service_booking_id=booking.id,
            user_id=booking.user_id,
            service_name=booking.service_name,
            guest_name=booking.guest_name,
        ))
        return booking

    def cancel_service_booking(self, service_booking_id: int, actor: User) -> ServiceBooking:
        """取消：管理员可取消任意预订；所有者只能取消 pending 的预订"""
        booking = self.get_service_booking_for(service_booking_id, actor, policy.CANCEL)

        if not policy.is_admin(actor) and booking.status != ServiceBookingStatus.PENDING:
            raise ConflictError("Can only cancel pending bookings",
                                context={"status": booking.status.value})

        return self._set_status(booking, ServiceBookingStatus.CANCELLED, actor)

    def update_status(self, service_booking_id: int, status: str, actor: User) -> ServiceBooking:
        """管理员设置状态"""
        if status not in SERVICE_BOOKING_STATUS_VALUES:
            raise ValidationError("Invalid status value", context={"status": status})

        booking = self.get_service_booking_for(service_booking_id, actor, policy.STATUS_OVERRIDE)
        return self._set_status(booking, ServiceBookingStatus(status), actor)

    def mark_confirmed(self, booking: ServiceBooking) -> ServiceBooking:
        """支付验签成功后确认（调用方已完成权限校验）"""
        return self._set_status(booking, ServiceBookingStatus.CONFIRMED, None)

    def _set_status(self, booking: ServiceBooking, status: ServiceBookingStatus,
                    actor: Optional[User]) -> ServiceBooking:
        old_status = booking.status.value
        booking.status = status
        self._commit(booking)
        logger.info(
            f"Service booking {booking.id}: status {old_status} -> {status.value} "
            f"by user {actor.id if actor else 'payment'}"
        )

        if old_status != status.value:
            self._publish(EventType.SERVICE_BOOKING_STATUS_CHANGED, ServiceBookingStatusChangedData(
                service_booking_id=booking.id,
                user_id=booking.user_id,
                service_name=booking.service_name,
                old_status=old_status,
                new_status=status.value,
            ))
        return booking

    def _commit(self, booking: ServiceBooking) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save service booking: {e}")
            raise DependencyError("Failed to save service booking") from e
        self.db.refresh(booking)

    def _publish(self, event_type: EventType, data) -> None:
        try:
            self._publish_event(Event(
                event_type=event_type,
                timestamp=datetime.now(),
                data=data.to_dict(),
                source="service_booking_service",
            ))
        except Exception as e:
            logger.error(f"Failed to publish {event_type}: {e}", exc_info=True)
