"""
领域事件定义
生命周期转换提交成功后发布，由通知处理器消费
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    BOOKING_CREATED = "booking.created"
    BOOKING_STATUS_CHANGED = "booking.status_changed"
    BOOKING_PAYMENT_STATUS_CHANGED = "booking.payment_status_changed"
    BOOKING_ID_PROOF_SUBMITTED = "booking.id_proof_submitted"
    BOOKING_ID_VERIFICATION_CHANGED = "booking.id_verification_changed"

    SERVICE_BOOKING_CREATED = "service_booking.created"
    SERVICE_BOOKING_STATUS_CHANGED = "service_booking.status_changed"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
        return result


@dataclass
class BookingCreatedData(BaseEventData):
    """预订创建；rescheduled 表示日期被自动顺延"""
    booking_id: int = 0
    user_id: int = 0
    room_id: int = 0
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    rescheduled: bool = False


@dataclass
class BookingStatusChangedData(BaseEventData):
    booking_id: int = 0
    user_id: int = 0
    room_id: int = 0
    old_status: str = ""
    new_status: str = ""
    changed_by: Optional[int] = None


@dataclass
class PaymentStatusChangedData(BaseEventData):
    booking_id: int = 0
    user_id: int = 0
    old_status: str = ""
    new_status: str = ""


@dataclass
class IdProofSubmittedData(BaseEventData):
    booking_id: int = 0
    user_id: int = 0
    id_type: str = ""


@dataclass
class IdVerificationChangedData(BaseEventData):
    booking_id: int = 0
    user_id: int = 0
    old_status: str = ""
    new_status: str = ""
    changed_by: Optional[int] = None


@dataclass
class ServiceBookingCreatedData(BaseEventData):
    service_booking_id: int = 0
    user_id: Optional[int] = None
    service_name: str = ""
    guest_name: str = ""


@dataclass
class ServiceBookingStatusChangedData(BaseEventData):
    service_booking_id: int = 0
    user_id: Optional[int] = None
    service_name: str = ""
    old_status: str = ""
    new_status: str = ""
