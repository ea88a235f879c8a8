"""
支付路由（Razorpay）
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.config import Settings, get_settings
from app.database import get_db
from app.models.ontology import User
from app.models.schemas import (
    PaymentOrderRequest, ServicePaymentOrderRequest, PaymentOrderResponse,
    PaymentVerifyRequest, ServicePaymentVerifyRequest, PaymentVerifyResponse
)
from app.services.payment_gateway import PaymentGateway, get_payment_gateway
from app.services.payment_service import PaymentService
from app.security.auth import get_current_user

router = APIRouter(prefix="/api/payments", tags=["Payments"])


def get_payment_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> PaymentService:
    return PaymentService(db, gateway, config=config)


@router.post("/razorpay/order", response_model=PaymentOrderResponse)
def create_order(
    data: PaymentOrderRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_user)
):
    return service.create_order(data.booking_id, current_user)


@router.post("/razorpay/verify", response_model=PaymentVerifyResponse)
def verify_payment(
    data: PaymentVerifyRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_user)
):
    return service.verify_payment(
        data.booking_id, data.razorpay_order_id, data.razorpay_payment_id,
        data.razorpay_signature, current_user
    )


@router.post("/razorpay/service-order", response_model=PaymentOrderResponse)
def create_service_order(
    data: ServicePaymentOrderRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_user)
):
    return service.create_service_order(data.service_booking_id, current_user)


@router.post("/razorpay/service-verify", response_model=PaymentVerifyResponse)
def verify_service_payment(
    data: ServicePaymentVerifyRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_user)
):
    return service.verify_service_payment(
        data.service_booking_id, data.razorpay_order_id, data.razorpay_payment_id,
        data.razorpay_signature, current_user
    )
