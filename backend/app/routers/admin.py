"""
管理端路由
预订管理、证件审核、服务预订审核、统计
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User, BookingStatus
from app.models.schemas import (
    BookingResponse, BookingStatusUpdate, IdVerificationUpdate,
    ServiceBookingResponse, ServiceBookingStatusUpdate, AdminStatsResponse
)
from app.services.booking_service import BookingService
from app.services.service_booking_service import ServiceBookingService
from app.services.report_service import ReportService
from app.security.auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/bookings", response_model=List[BookingResponse])
def list_bookings(
    status: Optional[BookingStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return BookingService(db).list_bookings(status)


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse)
def override_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """管理员修改预订状态"""
    return BookingService(db).override_status(booking_id, data.status, current_user)


@router.patch("/bookings/{booking_id}/id-verified", response_model=BookingResponse)
def update_id_verification(
    booking_id: int,
    data: IdVerificationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """证件审核"""
    return BookingService(db).update_id_verification(booking_id, data.id_verified, current_user)


@router.get("/stats", response_model=AdminStatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return ReportService(db).get_admin_stats()


@router.get("/service-bookings", response_model=List[ServiceBookingResponse])
def list_service_bookings(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return ServiceBookingService(db).list_service_bookings()


@router.patch("/service-bookings/{service_booking_id}/status",
              response_model=ServiceBookingResponse)
def update_service_booking_status(
    service_booking_id: int,
    data: ServiceBookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return ServiceBookingService(db).update_status(service_booking_id, data.status, current_user)
