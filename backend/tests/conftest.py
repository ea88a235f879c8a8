"""
Pytest 配置和共享 fixtures
"""
import os

# 应用级引擎使用内存库，测试用例通过 get_db 覆盖使用各自的引擎
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import datetime
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.models import ontology  # noqa: F401
from app.models.ontology import User, UserRole, Room, Service, Booking, BookingStatus
from app.security.auth import create_access_token
from app.services.event_handlers import register_event_handlers
from app.services.payment_gateway import get_payment_gateway
from app.main import app
from core.engine.event_bus import event_bus


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """创建数据库会话"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def clean_event_bus():
    """每个用例使用干净的事件总线"""
    event_bus.clear()
    yield
    event_bus.clear()


class FakeGateway:
    """记录调用的支付网关"""

    def __init__(self, valid_signature: str = "good-signature"):
        self.valid_signature = valid_signature
        self.orders = []

    def create_order(self, amount, currency, receipt, notes=None):
        self.orders.append({"amount": amount, "currency": currency,
                            "receipt": receipt, "notes": notes})
        return {"id": f"order_{len(self.orders)}", "amount": amount, "currency": currency}

    def verify_signature(self, order_id, payment_id, signature):
        return signature == self.valid_signature


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def client(db_session, session_factory, fake_gateway):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
    with TestClient(app) as test_client:
        # 通知处理器写入测试引擎
        register_event_handlers(session_factory)
        yield test_client
    app.dependency_overrides.clear()


# ============== 用户 Fixtures ==============

def _create_user(db_session, name, email, role=UserRole.USER):
    user = User(name=name, email=email, phone=None, role=role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def guest_user(db_session):
    return _create_user(db_session, "Asha", "asha@example.com")


@pytest.fixture
def other_user(db_session):
    return _create_user(db_session, "Ravi", "ravi@example.com")


@pytest.fixture
def admin_user(db_session):
    return _create_user(db_session, "Admin", "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def user_headers(guest_user):
    return {"Authorization": f"Bearer {create_access_token(guest_user.id, guest_user.role)}"}


@pytest.fixture
def other_headers(other_user):
    return {"Authorization": f"Bearer {create_access_token(other_user.id, other_user.role)}"}


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user.id, admin_user.role)}"}


# ============== 实体 Fixtures ==============

@pytest.fixture
def sample_room(db_session):
    room = Room(name="Deluxe 101", room_type="deluxe", price=Decimal("4500.00"), available=True)
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_service(db_session):
    service = Service(name="Ayurvedic Spa", category="spa", price_range="2500")
    db_session.add(service)
    db_session.commit()
    db_session.refresh(service)
    return service


@pytest.fixture
def make_booking(db_session):
    """直接写入预订（绕过服务层，用于构造已有占用）"""
    def _make(room, user, check_in: datetime, check_out: datetime,
              status=BookingStatus.CONFIRMED, **kwargs):
        booking = Booking(
            room_id=room.id,
            user_id=user.id,
            check_in=check_in,
            check_out=check_out,
            guests=kwargs.pop("guests", 2),
            rooms=kwargs.pop("rooms", 1),
            total_price=kwargs.pop("total_price", Decimal("9000.00")),
            room_price=kwargs.pop("room_price", Decimal("8000.00")),
            taxes=kwargs.pop("taxes", Decimal("800.00")),
            service_charges=kwargs.pop("service_charges", Decimal("200.00")),
            guest_name=kwargs.pop("guest_name", user.name),
            guest_email=kwargs.pop("guest_email", user.email),
            guest_phone=kwargs.pop("guest_phone", "9999999999"),
            status=status,
            **kwargs
        )
        if status == BookingStatus.CANCELLED and "cancelled_at" not in kwargs:
            booking.cancelled_at = datetime(2026, 1, 1)
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking
    return _make


@pytest.fixture
def booking_payload():
    """构造 camelCase 预订请求体"""
    def _payload(room_id, check_in="2026-03-02T10:00:00Z", check_out="2026-03-04T10:00:00Z",
                 **overrides):
        payload = {
            "roomId": room_id,
            "checkIn": check_in,
            "checkOut": check_out,
            "guests": 2,
            "rooms": 1,
            "totalPrice": 9000,
            "roomPrice": 8000,
            "taxes": 800,
            "serviceCharges": 200,
            "guestName": "Asha",
            "guestEmail": "asha@example.com",
            "guestPhone": "9999999999",
        }
        payload.update(overrides)
        return payload
    return _payload
