import os

# przed importem numbershop - settings czyta env przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TELEPHONY_PROVIDER"] = "mock"
os.environ["RESEND_API_KEY"] = ""
os.environ["DIDWW_WEBHOOK_SECRET"] = ""
os.environ["ADMIN_EMAILS"] = "admin@example.com"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from numbershop.celery_worker import celery_app
from numbershop.data.database import Base, SessionLocal, engine
from numbershop.data.models import OrderModel, PurchasedNumberModel, UserModel
from numbershop.main import app
from numbershop.api.dependencies import get_cart_store, get_payment_gateway, get_telephony_provider
from numbershop.services.cart_service import CartService
from numbershop.services.telephony import MockTelephonyProvider

celery_app.conf.task_always_eager = True
celery_app.conf.broker_url = "memory://"
celery_app.conf.result_backend = "cache+memory://"


class FakeCartStore:
    """Store koszyka w pamieci, ten sam interfejs co CartStore."""

    def __init__(self):
        self.carts = {}

    def load(self, user_id):
        return list(self.carts.get(user_id, []))

    def save(self, user_id, items):
        self.carts[user_id] = list(items)

    def delete(self, user_id):
        self.carts.pop(user_id, None)

    def ping(self):
        return True


class FakeGateway:
    def __init__(self):
        self.sessions = {}
        self.created = []

    def create_checkout_session(self, user_id, email, items, success_url, cancel_url):
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append({"user_id": user_id, "items": items, "success_url": success_url})
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    def construct_event(self, payload, signature):
        from numbershop.domain.errors import ValidationError
        import json

        if signature != "valid":
            raise ValidationError("Invalid signature")
        return json.loads(payload)

    def retrieve_session(self, session_id):
        return self.sessions[session_id]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cart_store():
    return FakeCartStore()


@pytest.fixture
def cart_service(cart_store):
    return CartService(cart_store)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def provider():
    return MockTelephonyProvider()


@pytest.fixture
def user(db):
    u = UserModel(email="alice@example.com", name="Alice", api_token="token-alice")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def other_user(db):
    u = UserModel(email="bob@example.com", name="Bob", api_token="token-bob")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def admin_user(db):
    u = UserModel(email="admin@example.com", name="Admin", api_token="token-admin")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def make_number(db):
    counter = {"n": 0}

    def _make(owner, status="pending", sms_enabled=False, phone_number=None):
        counter["n"] += 1
        n = counter["n"]
        order = OrderModel(
            user_id=owner.id,
            stripe_session_id=f"cs_fixture_{n}",
            total_amount=Decimal("10.00"),
            currency="usd",
        )
        db.add(order)
        db.flush()
        number = PurchasedNumberModel(
            user_id=owner.id,
            order_id=order.id,
            phone_number=phone_number or f"+1212555{n:04d}",
            country_code="US",
            area_code="212",
            monthly_price=Decimal("10.00"),
            setup_price=Decimal("0.00"),
            sms_enabled=sms_enabled,
            provisioning_status=status,
            is_active=status == "active",
            provider_did_id="did_fixture" if status == "active" else None,
            stripe_session_id=order.stripe_session_id,
        )
        db.add(number)
        db.commit()
        return number

    return _make


@pytest.fixture
def client(db, cart_store, gateway, provider):
    app.dependency_overrides[get_cart_store] = lambda: cart_store
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_telephony_provider] = lambda: provider

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def auth(token="token-alice"):
    return {"Authorization": f"Bearer {token}"}
