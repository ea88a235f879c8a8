"""
报表服务
提供管理端经营统计
"""
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy import func
from app.models.ontology import Room, Booking, BookingStatus


class ReportService:
    """报表服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_admin_stats(self) -> dict:
        """获取管理端统计数据"""
        total_rooms = self.db.query(Room).count()
        available_rooms = self.db.query(Room).filter(Room.available == True).count()  # noqa: E712

        total_bookings = self.db.query(Booking).count()
        confirmed_bookings = self.db.query(Booking).filter(
            Booking.status == BookingStatus.CONFIRMED
        ).count()

        total_revenue = self.db.query(func.sum(Booking.total_price)).scalar() or Decimal('0')

        # 入住率：confirmed + checked-in 预订数 / 房间数
        occupied = self.db.query(Booking).filter(
            Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN])
        ).count()
        occupancy_rate = round(occupied / total_rooms * 100, 1) if total_rooms > 0 else 0

        return {
            'total_rooms': total_rooms,
            'available_rooms': available_rooms,
            'total_bookings': total_bookings,
            'confirmed_bookings': confirmed_bookings,
            'total_revenue': float(total_revenue),
            'occupancy_rate': occupancy_rate,
        }
