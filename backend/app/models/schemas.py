"""
Pydantic 模式定义
用于 API 请求/响应验证；线上字段为 camelCase（roomId、checkIn ...），
同时接受 snake_case 字段名
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel
from app.models.ontology import (
    BookingStatus, PaymentStatus, IdVerificationStatus,
    ServiceBookingStatus, NotificationRole
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


def _naive_utc(value: datetime) -> datetime:
    """带时区的时间统一转为 UTC 无时区时间（数据库按无时区存储）"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ============== 房间预订 Schemas ==============

class BookingCreate(CamelModel):
    room_id: int
    check_in: datetime
    check_out: datetime
    guests: int = Field(..., ge=1)
    rooms: int = Field(..., ge=1)
    total_price: Decimal = Field(..., ge=0, allow_inf_nan=False)
    room_price: Decimal = Field(..., ge=0, allow_inf_nan=False)
    taxes: Decimal = Field(..., ge=0, allow_inf_nan=False)
    service_charges: Decimal = Field(..., ge=0, allow_inf_nan=False)
    guest_name: str = Field(..., min_length=1, max_length=100)
    guest_email: str = Field(..., min_length=1, max_length=120)
    guest_phone: str = Field(..., min_length=1, max_length=30)

    @field_validator("check_in", "check_out")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return _naive_utc(v)


class BookingStatusUpdate(CamelModel):
    status: str


class PaymentStatusUpdate(CamelModel):
    payment_status: str


class IdVerificationUpdate(CamelModel):
    id_verified: str


class IdProofSubmit(CamelModel):
    """证件材料引用（文件本身由上传服务保存）"""
    id_type: str = Field(..., min_length=1, max_length=50)
    id_proof_url: str = Field(..., min_length=1, max_length=255)


class BookingResponse(CamelResponse):
    id: int
    room_id: int
    user_id: int
    check_in: datetime
    check_out: datetime
    guests: int
    rooms: int
    total_price: float
    room_price: float
    taxes: float
    service_charges: float
    guest_name: str
    guest_email: str
    guest_phone: str
    status: BookingStatus
    payment_status: PaymentStatus
    id_verified: IdVerificationStatus
    cancelled_at: Optional[datetime] = None
    id_proof_url: Optional[str] = None
    id_proof_type: Optional[str] = None
    id_proof_uploaded_at: Optional[datetime] = None
    booking_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


# ============== 服务预订 Schemas ==============

class ServiceBookingCreate(CamelModel):
    service_id: int
    date: datetime
    time: str = Field(..., min_length=1, max_length=20)
    guests: int = Field(..., ge=1)
    guest_name: str = Field(..., min_length=1, max_length=100)
    guest_email: str = Field(..., min_length=1, max_length=120)
    guest_phone: str = Field(default="", max_length=30)
    special_requests: str = ""
    total_price: Optional[Decimal] = Field(None, ge=0, allow_inf_nan=False)
    # 仅用于拒绝客户端自带状态
    status: Optional[str] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return _naive_utc(v)


class ServiceBookingStatusUpdate(CamelModel):
    status: str


class ServiceBookingResponse(CamelResponse):
    id: int
    service_id: int
    service_name: str
    category: Optional[str] = None
    price_range: Optional[str] = None
    date: datetime
    time: str
    guests: int
    user_id: Optional[int] = None
    guest_name: str
    guest_email: str
    guest_phone: Optional[str] = None
    special_requests: Optional[str] = None
    status: ServiceBookingStatus
    total_price: Optional[float] = None
    created_at: Optional[datetime] = None


class ServiceBookingCancelResponse(CamelResponse):
    message: str
    booking: ServiceBookingResponse


# ============== 支付 Schemas ==============

class PaymentOrderRequest(CamelModel):
    booking_id: int


class ServicePaymentOrderRequest(CamelModel):
    service_booking_id: int


class PaymentOrderResponse(CamelResponse):
    order_id: str
    amount: int
    currency: str
    booking_id: Optional[int] = None
    service_booking_id: Optional[int] = None


class PaymentVerifyRequest(CamelModel):
    booking_id: int
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class ServicePaymentVerifyRequest(CamelModel):
    service_booking_id: int
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class PaymentVerifyResponse(CamelResponse):
    status: str = "verified"
    payment_id: str


# ============== 通知 / 统计 Schemas ==============

class NotificationResponse(CamelResponse):
    id: int
    user_id: Optional[int] = None
    title: str
    message: str
    role: NotificationRole
    read: bool
    created_at: Optional[datetime] = None


class AdminStatsResponse(CamelResponse):
    total_rooms: int
    available_rooms: int
    total_bookings: int
    confirmed_bookings: int
    total_revenue: float
    occupancy_rate: float

