"""
房间预订路由（客人端）
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.config import Settings, get_settings
from app.database import get_db
from app.models.ontology import User
from app.models.schemas import (
    BookingCreate, BookingStatusUpdate, PaymentStatusUpdate, IdProofSubmit, BookingResponse
)
from app.services.booking_service import BookingService
from app.security.auth import get_current_user

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user)
):
    """创建预订；日期冲突时自动顺延"""
    return BookingService(db, config=config).create_booking(data, current_user)


@router.get("", response_model=List[BookingResponse])
def list_my_bookings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return BookingService(db).list_user_bookings(current_user.id)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return BookingService(db).get_booking_for(booking_id, current_user)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """更新状态（所有者或管理员）"""
    return BookingService(db).update_status(booking_id, data.status, current_user)


@router.patch("/{booking_id}/id-proof", response_model=BookingResponse)
def submit_id_proof(
    booking_id: int,
    data: IdProofSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """提交证件（文件本身由上传服务保存，这里只记录引用）"""
    return BookingService(db).submit_id_proof(booking_id, data, current_user)


@router.patch("/{booking_id}/payment-status", response_model=BookingResponse)
def update_payment_status(
    booking_id: int,
    data: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return BookingService(db).update_payment_status(booking_id, data.payment_status, current_user)
