import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import dropship.models  # noqa: F401
from dropship.database import Base, get_db
from dropship.main import app
from dropship.models.admin import Admin, AdminRole
from dropship.models.order import Order, OrderStatus
from dropship.models.user import User
from dropship.services import order_wallet_sync  # noqa: F401
from dropship.services.chat_presence import PresenceRegistry, get_presence_registry
from dropship.utils.edge_functions import EdgeFunctionClient, get_edge_client
from dropship.utils.security import create_access_token

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    def _make(wallet_balance="0", postpaid_used="0", credit_limit="0", enabled=False,
              allow_payout_with_dues=False, email=None, name="Test Dropshipper"):
        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            wallet_balance=Decimal(wallet_balance),
            postpaid_used=Decimal(postpaid_used),
            postpaid_credit_limit=Decimal(credit_limit),
            postpaid_enabled=enabled,
            allow_payout_with_dues=allow_payout_with_dues,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def user(make_user):
    return make_user(wallet_balance="100.00")


@pytest.fixture
def make_admin(db):
    def _make(role=AdminRole.ADMIN, name="Admin"):
        admin = Admin(
            id=str(uuid.uuid4()),
            email=f"{uuid.uuid4().hex[:8]}@admin.example.com",
            name=name,
            role=role,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin
    return _make


@pytest.fixture
def admin(make_admin):
    return make_admin()


@pytest.fixture
def make_order(db):
    """Insert an order directly; created_at is spaced so oldest-first ordering is stable"""
    counter = {"n": 0}

    def _make(user, base_price="10.00", selling_price="15.00", quantity=1, status=OrderStatus.PENDING_PAYMENT):
        counter["n"] += 1
        order = Order(
            id=str(uuid.uuid4()),
            order_number=f"DS-TEST-{counter['n']:04d}",
            dropshipper_id=user.id,
            product_name="Widget",
            customer_name="Customer",
            base_price=Decimal(base_price),
            selling_price=Decimal(selling_price),
            quantity=quantity,
            status=status,
            created_at=datetime(2026, 1, 1) + timedelta(minutes=counter["n"]),
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order
    return _make


@pytest.fixture
def edge_client():
    client = MagicMock(spec=EdgeFunctionClient)
    client.invoke.return_value = {}
    return client


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def presence(clock):
    return PresenceRegistry(inactivity_timeout=30, grace_period=30, clock=clock)


@pytest.fixture
def client(db, edge_client, presence):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_edge_client] = lambda: edge_client
    app.dependency_overrides[get_presence_registry] = lambda: presence
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers(user):
    token = create_access_token({"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    token = create_access_token({"sub": admin.id, "adminId": admin.id})
    return {"Authorization": f"Bearer {token}"}
