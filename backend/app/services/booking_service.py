"""
房间预订服务 - 预订生命周期控制
管理 Booking 对象：创建（含自动顺延）、状态、支付状态、证件审核
每个转换：权限校验 -> 不变量校验 -> 提交 -> 发布事件
事件在提交成功后才发布，通知失败不影响主操作
"""
from typing import Callable, List, Optional
from datetime import datetime
from decimal import Decimal, InvalidOperation
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.models.ontology import (
    Booking, Room, User, BookingStatus, PaymentStatus, IdVerificationStatus,
    ACTIVE_BOOKING_STATUSES, utc_now
)
from app.models.schemas import BookingCreate, IdProofSubmit
from app.models.events import (
    EventType, BookingCreatedData, BookingStatusChangedData,
    PaymentStatusChangedData, IdProofSubmittedData, IdVerificationChangedData
)
from app.security import policy
from app.services.availability import resolve_availability, room_locks, RoomLockRegistry
from core.engine.event_bus import event_bus, Event
from core.engine.state_machine import StateMachine, StateMachineConfig, StateTransition
from core.errors import (
    ValidationError, NotFoundError, AuthorizationError, ConflictError, DependencyError
)

logger = logging.getLogger(__name__)


ID_VERIFICATION_REQUIRED = "ID verification is required before check-in"
APPROVED_ID_LOCKED = "Approved ID verification cannot be changed"

BOOKING_STATUS_MACHINE = StateMachine(StateMachineConfig(
    name="Booking status",
    states=[s.value for s in BookingStatus],
    transitions=[
        StateTransition("pending", "confirmed"),
        StateTransition("pending", "cancelled"),
        StateTransition(
            "confirmed", "checked-in",
            condition=lambda ctx: ctx.get("id_verified") == IdVerificationStatus.APPROVED.value,
            rejection=ID_VERIFICATION_REQUIRED,
        ),
        StateTransition("confirmed", "cancelled"),
        StateTransition("checked-in", "checked-out"),
        StateTransition("checked-in", "cancelled"),
    ],
    final_states=["checked-out", "cancelled"],
))

ID_VERIFICATION_MACHINE = StateMachine(StateMachineConfig(
    name="ID verification",
    states=[s.value for s in IdVerificationStatus],
    transitions=[
        StateTransition("pending", "approved"),
        StateTransition("pending", "rejected"),
        StateTransition("rejected", "pending"),
        StateTransition("rejected", "approved"),
    ],
    final_states=["approved"],
))

PAYMENT_STATUS_VALUES = {s.value for s in PaymentStatus}


class BookingService:
    """房间预订服务"""

    def __init__(self, db: Session, config: Optional[Settings] = None,
                 event_publisher: Callable[[Event], None] = None,
                 locks: Optional[RoomLockRegistry] = None):
        self.db = db
        self.config = config or default_settings
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self._locks = locks or room_locks
        self._outbox: List[Event] = []

    # ============== 查询 ==============

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    def get_booking_for(self, booking_id: int, actor: User,
                        field: str = policy.READ) -> Booking:
        """获取预订并校验权限"""
        booking = self.get_booking(booking_id)
        if not booking:
            raise NotFoundError("Booking not found", context={"booking_id": booking_id})
        policy.ensure_can_mutate(actor, booking, field)
        return booking

    def list_user_bookings(self, user_id: int) -> List[Booking]:
        return self.db.query(Booking).filter(
            Booking.user_id == user_id
        ).order_by(Booking.check_in.desc()).all()

    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        """全部预订（管理端）"""
        query = self.db.query(Booking)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc()).all()

    def find_active_overlaps(self, room_id: int, check_in: datetime, check_out: datetime,
                             exclude_id: Optional[int] = None) -> List[Booking]:
        """与 [check_in, check_out) 重叠的有效预订"""
        query = self.db.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.cancelled_at.is_(None),
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        )
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        return query.all()

    # ============== 创建 ==============

    def create_booking(self, data: BookingCreate, actor: User) -> Booking:
        """
        创建房间预订
        业务规则：
        - 管理员不能作为客人预订
        - check_out 必须晚于 check_in
        - 日期冲突时自动顺延到下一个等长空闲区间，而不是拒绝
        - 房间预订直接为 confirmed（服务预订才从 pending 开始）
        """
        if policy.is_admin(actor):
            raise AuthorizationError("Admins cannot create bookings")

        _validate_booking_fields(data)
        if data.check_out <= data.check_in:
            raise ValidationError("Check-out must be after check-in")

        room = self.db.query(Room).filter(Room.id == data.room_id).first()
        if not room:
            raise NotFoundError("Room not found", context={"room_id": data.room_id})

        with self._locks.hold(room.id):
            booking = self._insert_with_recheck(data, actor)

        self._emit(EventType.BOOKING_CREATED, BookingCreatedData(
            booking_id=booking.id,
            user_id=booking.user_id,
            room_id=booking.room_id,
            check_in=booking.check_in,
            check_out=booking.check_out,
            rescheduled=booking.check_in != data.check_in,
        ))
        self._flush_events()
        return booking

    def _insert_with_recheck(self, data: BookingCreate, actor: User) -> Booking:
        """
        搜索空闲区间并写入
        写入后在同一事务内复查，若出现其他重叠的有效预订则回滚并重新搜索
        """
        attempts = max(self.config.BOOKING_CREATE_RETRIES, 0) + 1

        for attempt in range(attempts):
            resolution = resolve_availability(
                data.room_id, data.check_in, data.check_out,
                self.find_active_overlaps,
                max_rounds=self.config.AVAILABILITY_MAX_ROUNDS,
            )

            booking = Booking(
                room_id=data.room_id,
                user_id=actor.id,
                check_in=resolution.check_in,
                check_out=resolution.check_out,
                guests=data.guests,
                rooms=data.rooms,
                total_price=data.total_price,
                room_price=data.room_price,
                taxes=data.taxes,
                service_charges=data.service_charges,
                guest_name=data.guest_name,
                guest_email=data.guest_email,
                guest_phone=data.guest_phone,
                status=BookingStatus.CONFIRMED,
                payment_status=PaymentStatus.PENDING,
                id_verified=IdVerificationStatus.PENDING,
                booking_date=utc_now(),
            )
            self.db.add(booking)

            try:
                self.db.flush()
                # 达到轮数上限时结果本就是尽力而为，不再复查
                clash = [] if resolution.exhausted else self.find_active_overlaps(
                    booking.room_id, booking.check_in, booking.check_out,
                    exclude_id=booking.id,
                )
                if not clash:
                    self.db.commit()
                    self.db.refresh(booking)
                    logger.info(
                        f"Booking {booking.id} created for room {booking.room_id} "
                        f"[{booking.check_in.isoformat()}, {booking.check_out.isoformat()})"
                    )
                    return booking
                self.db.rollback()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to create booking for room {data.room_id}: {e}")
                raise DependencyError("Failed to save booking") from e

            logger.warning(
                f"Room {data.room_id}: concurrent booking detected on attempt {attempt + 1}, "
                f"searching again"
            )

        raise ConflictError(
            "Room is no longer available for the requested dates",
            context={"room_id": data.room_id},
        )

    # ============== 状态转换 ==============

    def update_status(self, booking_id: int, new_status: str, actor: User,
                      field: str = policy.STATUS) -> Booking:
        """
        更新预订状态
        - 未知状态值：ValidationError
        - 终态或转换表之外：ConflictError
        - checked-in 需要证件已审核通过
        - 进入 cancelled 时写入 cancelled_at，其他状态清空
        """
        if new_status not in BOOKING_STATUS_MACHINE.states:
            raise ValidationError("Invalid status", context={"status": new_status})

        booking = self.get_booking_for(booking_id, actor, field)
        old_status = booking.status.value

        BOOKING_STATUS_MACHINE.check_transition(
            old_status, new_status, context={"id_verified": booking.id_verified.value}
        )

        booking.status = BookingStatus(new_status)
        booking.cancelled_at = utc_now() if booking.status == BookingStatus.CANCELLED else None
        self._commit(booking)
        logger.info(f"Booking {booking.id}: status {old_status} -> {new_status} by user {actor.id}")

        self._emit(EventType.BOOKING_STATUS_CHANGED, BookingStatusChangedData(
            booking_id=booking.id,
            user_id=booking.user_id,
            room_id=booking.room_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor.id,
        ))
        self._flush_events()
        return booking

    def override_status(self, booking_id: int, new_status: str, actor: User) -> Booking:
        """管理员修改状态，同样遵守转换表和证件约束"""
        return self.update_status(booking_id, new_status, actor, field=policy.STATUS_OVERRIDE)

    def update_payment_status(self, booking_id: int, payment_status: str, actor: User) -> Booking:
        """更新支付状态（仅所有者；已取消预订拒绝任何支付操作）"""
        if payment_status not in PAYMENT_STATUS_VALUES:
            raise ValidationError("Invalid payment status", context={"payment_status": payment_status})

        booking = self.get_booking_for(booking_id, actor, policy.PAYMENT_STATUS)
        ensure_payable(booking)

        old_status = booking.payment_status.value
        booking.payment_status = PaymentStatus(payment_status)
        self._commit(booking)

        self._emit(EventType.BOOKING_PAYMENT_STATUS_CHANGED, PaymentStatusChangedData(
            booking_id=booking.id,
            user_id=booking.user_id,
            old_status=old_status,
            new_status=payment_status,
        ))
        self._flush_events()
        return booking

    def mark_paid(self, booking: Booking) -> Booking:
        """支付验签成功后标记已支付（调用方已完成权限校验）"""
        old_status = booking.payment_status.value
        booking.payment_status = PaymentStatus.PAID
        self._commit(booking)
        self._emit(EventType.BOOKING_PAYMENT_STATUS_CHANGED, PaymentStatusChangedData(
            booking_id=booking.id,
            user_id=booking.user_id,
            old_status=old_status,
            new_status=PaymentStatus.PAID.value,
        ))
        self._flush_events()
        return booking

    def submit_id_proof(self, booking_id: int, data: IdProofSubmit, actor: User) -> Booking:
        """
        提交证件材料（仅所有者）
        审核状态重置为 pending；已审核通过的预订不允许重新提交
        """
        booking = self.get_booking_for(booking_id, actor, policy.ID_PROOF)

        if booking.status == BookingStatus.CANCELLED:
            raise ConflictError("Cancelled bookings cannot accept ID proof")
        if booking.id_verified == IdVerificationStatus.APPROVED:
            raise ConflictError(APPROVED_ID_LOCKED)

        booking.id_proof_type = data.id_type
        booking.id_proof_url = data.id_proof_url
        booking.id_proof_uploaded_at = utc_now()
        booking.id_verified = IdVerificationStatus.PENDING
        self._commit(booking)

        self._emit(EventType.BOOKING_ID_PROOF_SUBMITTED, IdProofSubmittedData(
            booking_id=booking.id,
            user_id=booking.user_id,
            id_type=data.id_type,
        ))
        self._flush_events()
        return booking

    def update_id_verification(self, booking_id: int, id_verified: str, actor: User) -> Booking:
        """
        证件审核（仅管理员）
        approved 之后不可变更；重复提交相同值视为无操作
        """
        if id_verified not in ID_VERIFICATION_MACHINE.states:
            raise ValidationError("Invalid ID verification status",
                                  context={"id_verified": id_verified})

        booking = self.get_booking_for(booking_id, actor, policy.ID_VERIFIED)
        old_value = booking.id_verified.value

        if old_value == id_verified:
            return booking
        if booking.id_verified == IdVerificationStatus.APPROVED:
            raise ConflictError(APPROVED_ID_LOCKED, context={"booking_id": booking.id})

        ID_VERIFICATION_MACHINE.check_transition(old_value, id_verified)

        booking.id_verified = IdVerificationStatus(id_verified)
        self._commit(booking)
        logger.info(f"Booking {booking.id}: ID verification {old_value} -> {id_verified}")

        self._emit(EventType.BOOKING_ID_VERIFICATION_CHANGED, IdVerificationChangedData(
            booking_id=booking.id,
            user_id=booking.user_id,
            old_status=old_value,
            new_status=id_verified,
            changed_by=actor.id,
        ))
        self._flush_events()
        return booking

    # ============== 内部 ==============

    def _commit(self, booking: Booking) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save booking {booking.id}: {e}")
            raise DependencyError("Failed to save booking") from e
        self.db.refresh(booking)

    def _emit(self, event_type: EventType, data) -> None:
        self._outbox.append(Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=data.to_dict(),
            source="booking_service",
        ))

    def _flush_events(self) -> None:
        """发布已提交转换的事件；发布失败只记录日志"""
        events, self._outbox = self._outbox, []
        for event in events:
            try:
                self._publish_event(event)
            except Exception as e:
                logger.error(f"Failed to publish {event.event_type}: {e}", exc_info=True)


def ensure_payable(booking: Booking) -> None:
    """支付操作前置条件：预订未取消"""
    if booking.status == BookingStatus.CANCELLED:
        raise ConflictError("Cancelled bookings cannot be paid",
                            context={"booking_id": booking.id})


PRICE_FIELDS = ("total_price", "room_price", "taxes", "service_charges")
REQUIRED_FIELDS = ("room_id", "check_in", "check_out", "guest_name", "guest_email", "guest_phone")


def _validate_booking_fields(data: BookingCreate) -> None:
    """请求体未经 pydantic 校验时（如 model_construct）的兜底检查"""
    missing = [name for name in REQUIRED_FIELDS if not getattr(data, name, None)]
    if missing:
        raise ValidationError("Missing required fields", context={"fields": missing})

    for name in ("guests", "rooms"):
        value = getattr(data, name, None)
        if not isinstance(value, int) or value < 1:
            raise ValidationError(f"{name} must be a positive integer")

    for name in PRICE_FIELDS:
        value = getattr(data, name, None)
        if value is None:
            raise ValidationError("Missing required fields", context={"fields": [name]})
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            amount = Decimal("NaN")
        if not amount.is_finite() or amount < 0:
            raise ValidationError(f"{name} must be a finite non-negative number")
