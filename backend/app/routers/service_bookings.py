"""
服务预订路由（客人端）
新预订一律为 pending，需管理员确认
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import User
from app.models.schemas import (
    ServiceBookingCreate, ServiceBookingResponse, ServiceBookingCancelResponse
)
from app.services.service_booking_service import ServiceBookingService
from app.security.auth import get_current_user

router = APIRouter(prefix="/api/service-bookings", tags=["Service Bookings"])


@router.post("", response_model=ServiceBookingResponse, status_code=status.HTTP_201_CREATED)
def create_service_booking(
    data: ServiceBookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ServiceBookingService(db).create_service_booking(data, current_user)


@router.get("", response_model=List[ServiceBookingResponse])
def list_my_service_bookings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ServiceBookingService(db).list_user_service_bookings(current_user.id)


@router.get("/{service_booking_id}", response_model=ServiceBookingResponse)
def get_service_booking(
    service_booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ServiceBookingService(db).get_service_booking_for(service_booking_id, current_user)


@router.delete("/{service_booking_id}", response_model=ServiceBookingCancelResponse)
def cancel_service_booking(
    service_booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """取消服务预订（不删除记录）"""
    booking = ServiceBookingService(db).cancel_service_booking(service_booking_id, current_user)
    return ServiceBookingCancelResponse(
        message="Booking cancelled successfully",
        booking=ServiceBookingResponse.model_validate(booking),
    )
