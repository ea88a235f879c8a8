"""
支付服务
房间预订与服务预订的下单、验签
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.models.ontology import (
    ServiceBooking, ServiceBookingStatus, IdVerificationStatus, User
)
from app.security import policy
from app.services.booking_service import BookingService, ensure_payable
from app.services.payment_gateway import PaymentGateway
from app.services.service_booking_service import ServiceBookingService
from core.errors import ValidationError, ConflictError

logger = logging.getLogger(__name__)


def to_minor_units(value: Any) -> int:
    """金额转换为最小货币单位（四舍五入）；无法解析时返回 0"""
    if value is None or value == "":
        return 0
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return 0
    if not amount.is_finite():
        return 0
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    """支付服务"""

    def __init__(self, db: Session, gateway: PaymentGateway,
                 config: Optional[Settings] = None,
                 booking_service: Optional[BookingService] = None,
                 service_booking_service: Optional[ServiceBookingService] = None):
        self.db = db
        self.gateway = gateway
        self.config = config or default_settings
        self.booking_service = booking_service or BookingService(db, config=self.config)
        self.service_booking_service = service_booking_service or ServiceBookingService(db)

    # ============== 房间预订 ==============

    def create_order(self, booking_id: int, actor: User) -> Dict[str, Any]:
        """
        为房间预订创建支付订单
        前置条件：所有者、未取消、证件已审核通过、金额 > 0
        """
        booking = self.booking_service.get_booking_for(booking_id, actor, policy.PAYMENT)
        ensure_payable(booking)

        if booking.id_verified != IdVerificationStatus.APPROVED:
            raise ConflictError("ID verification is required before payment",
                                context={"booking_id": booking.id})

        amount = to_minor_units(booking.total_price)
        if amount <= 0:
            raise ValidationError("Invalid booking amount", context={"booking_id": booking.id})

        order = self.gateway.create_order(
            amount=amount,
            currency=self.config.PAYMENT_CURRENCY,
            receipt=f"booking_{booking.id}",
            notes={"bookingId": str(booking.id), "userId": str(actor.id)},
        )
        return {
            "order_id": order["id"],
            "amount": order.get("amount", amount),
            "currency": order.get("currency", self.config.PAYMENT_CURRENCY),
            "booking_id": booking.id,
        }

    def verify_payment(self, booking_id: int, order_id: str, payment_id: str,
                       signature: str, actor: User) -> Dict[str, Any]:
        """验签成功后预订标记为已支付"""
        booking = self.booking_service.get_booking_for(booking_id, actor, policy.PAYMENT)
        ensure_payable(booking)

        if not self.gateway.verify_signature(order_id, payment_id, signature):
            logger.warning(f"Invalid payment signature for booking {booking.id}")
            raise ValidationError("Invalid Razorpay signature", context={"booking_id": booking.id})

        self.booking_service.mark_paid(booking)
        logger.info(f"Booking {booking.id} paid with {payment_id}")
        return {"status": "verified", "payment_id": payment_id}

    # ============== 服务预订 ==============

    def create_service_order(self, service_booking_id: int, actor: User) -> Dict[str, Any]:
        """为服务预订创建支付订单；金额取 total_price，没有时取数值型 price_range"""
        booking = self._get_payable_service_booking(service_booking_id, actor)

        amount = to_minor_units(booking.total_price) if booking.total_price else 0
        if not amount:
            amount = to_minor_units(booking.price_range)
        if amount <= 0:
            raise ValidationError("Invalid service booking amount",
                                  context={"service_booking_id": booking.id})

        order = self.gateway.create_order(
            amount=amount,
            currency=self.config.PAYMENT_CURRENCY,
            receipt=f"service_booking_{booking.id}",
            notes={"serviceBookingId": str(booking.id), "userId": str(actor.id)},
        )
        return {
            "order_id": order["id"],
            "amount": order.get("amount", amount),
            "currency": order.get("currency", self.config.PAYMENT_CURRENCY),
            "service_booking_id": booking.id,
        }

    def verify_service_payment(self, service_booking_id: int, order_id: str, payment_id: str,
                               signature: str, actor: User) -> Dict[str, Any]:
        """验签成功后服务预订确认"""
        booking = self._get_payable_service_booking(service_booking_id, actor)

        if not self.gateway.verify_signature(order_id, payment_id, signature):
            logger.warning(f"Invalid payment signature for service booking {booking.id}")
            raise ValidationError("Invalid Razorpay signature",
                                  context={"service_booking_id": booking.id})

        self.service_booking_service.mark_confirmed(booking)
        return {"status": "verified", "payment_id": payment_id}

    def _get_payable_service_booking(self, service_booking_id: int, actor: User) -> ServiceBooking:
        booking = self.service_booking_service.get_service_booking_for(
            service_booking_id, actor, policy.PAYMENT
        )
        if booking.status == ServiceBookingStatus.CANCELLED:
            raise ConflictError("Cancelled service bookings cannot be paid",
                                context={"service_booking_id": booking.id})
        return booking
