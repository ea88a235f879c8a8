"""
领域对象定义
Booking 是房间预订的聚合根；预订从不物理删除，取消只是状态转换
"""
from datetime import datetime, UTC
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum,
    Boolean, Numeric, UniqueConstraint
)
from sqlalchemy.orm import relationship
from app.database import Base


def utc_now() -> datetime:
    """当前 UTC 时间（naive，与数据库中的存储格式一致）"""
    return datetime.now(UTC).replace(tzinfo=None)


# ============== 枚举定义 ==============

class UserRole(str, Enum):
    """用户角色"""
    USER = "user"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    """房间预订状态"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"


# 占用房间的状态集合（另需 cancelled_at 为空）
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
)


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class IdVerificationStatus(str, Enum):
    """证件审核状态，approved 之后不可再变更"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ServiceBookingStatus(str, Enum):
    """服务预订状态，创建时为 pending，需管理员确认"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class NotificationRole(str, Enum):
    """通知受众"""
    USER = "user"
    ADMIN = "admin"
    ALL = "all"


# ============== 对象定义 ==============

class User(Base):
    """
    用户对象
    认证与密码由外部认证服务负责，这里只保存身份和角色
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(120), unique=True)
    phone = Column(String(30), unique=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.USER)
    created_at = Column(DateTime, default=utc_now)

    bookings = relationship("Booking", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Room(Base):
    """房间对象（CRUD 由外部管理端负责）"""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    room_type = Column(String(50), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    available = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utc_now)

    bookings = relationship("Booking", back_populates="room")


class Booking(Base):
    """
    房间预订 - 聚合根
    不变量：
    - check_out > check_in
    - status == checked-in 仅当 id_verified == approved
    - cancelled_at 非空 当且仅当 status == cancelled
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    check_in = Column(DateTime, nullable=False)
    check_out = Column(DateTime, nullable=False)
    guests = Column(Integer, nullable=False)
    rooms = Column(Integer, nullable=False)

    # 价格由客户端给出；total_price 为可信总价，不由分项重新计算
    total_price = Column(Numeric(10, 2), nullable=False)
    room_price = Column(Numeric(10, 2), nullable=False)
    taxes = Column(Numeric(10, 2), nullable=False)
    service_charges = Column(Numeric(10, 2), nullable=False)

    guest_name = Column(String(100), nullable=False)
    guest_email = Column(String(120), nullable=False)
    guest_phone = Column(String(30), nullable=False)

    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    id_verified = Column(SQLEnum(IdVerificationStatus), nullable=False,
                         default=IdVerificationStatus.PENDING)
    cancelled_at = Column(DateTime)

    # 证件材料（文件由上传服务保存，这里只记录引用）
    id_proof_url = Column(String(255))
    id_proof_type = Column(String(50))
    id_proof_uploaded_at = Column(DateTime)

    booking_date = Column(DateTime, default=utc_now)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    room = relationship("Room", back_populates="bookings")
    user = relationship("User", back_populates="bookings")


class Notification(Base):
    """
    站内通知
    user_id 为空表示按角色广播
    已读状态按接收人记录在 NotificationReceipt 中，广播被一人标记已读不影响其他人
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    role = Column(SQLEnum(NotificationRole), nullable=False, default=NotificationRole.ALL)
    created_at = Column(DateTime, default=utc_now)

    receipts = relationship("NotificationReceipt", back_populates="notification",
                            cascade="all, delete-orphan")


class NotificationReceipt(Base):
    """通知已读回执（每个接收人一条）"""
    __tablename__ = "notification_receipts"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_receipt"),
    )

    id = Column(Integer, primary_key=True, index=True)
    notification_id = Column(Integer, ForeignKey("notifications.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    read_at = Column(DateTime, default=utc_now)

    notification = relationship("Notification", back_populates="receipts")


class Service(Base):
    """酒店服务（餐饮、SPA 等）"""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    category = Column(String(50))
    price_range = Column(String(50), default="")
    created_at = Column(DateTime, default=utc_now)


class ServiceBooking(Base):
    """服务预订"""
    __tablename__ = "service_bookings"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    service_name = Column(String(120), nullable=False)
    category = Column(String(50))
    price_range = Column(String(50), default="")
    date = Column(DateTime, nullable=False)
    time = Column(String(20), nullable=False)
    guests = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_name = Column(String(100), nullable=False)
    guest_email = Column(String(120), nullable=False)
    guest_phone = Column(String(30), default="")
    special_requests = Column(Text, default="")
    status = Column(SQLEnum(ServiceBookingStatus), nullable=False,
                    default=ServiceBookingStatus.PENDING)
    total_price = Column(Numeric(10, 2))
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    service = relationship("Service")
