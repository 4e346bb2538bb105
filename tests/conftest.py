import os

# Must be set before restaurant_bot is imported: the limiter and settings read them at import time
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_conftest_key")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")

from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from restaurant_bot.app_factory import create_app
from restaurant_bot.config import Settings
from restaurant_bot.context import AppContext
from restaurant_bot.db import create_session_factory, init_db
from restaurant_bot.errors import GatewayError
from restaurant_bot.models import MenuItem
from restaurant_bot.payments import PaymentGateway
from restaurant_bot.schemas.payments import PaymentInitialization, PaymentVerification
from restaurant_bot.services.catalog import SAMPLE_MENU


class FakeGateway(PaymentGateway):
    """In-memory payment gateway that records every call."""

    def __init__(self):
        self.initialize_calls: List[Dict] = []
        self.verify_calls: List[str] = []
        self.fail_initialize: Optional[GatewayError] = None
        self.verify_status: Dict[str, str] = {}
        self.default_verify_status = "success"
        self.closed = False

    async def initialize(self, amount_minor, reference, callback_url, email=None):
        self.initialize_calls.append({
            "amount": amount_minor,
            "reference": reference,
            "callback_url": callback_url,
            "email": email,
        })
        if self.fail_initialize is not None:
            raise self.fail_initialize
        return PaymentInitialization(
            authorization_url=f"https://checkout.paystack.test/{reference}",
            access_code="access_" + reference,
            reference=reference,
        )

    async def verify(self, reference):
        self.verify_calls.append(reference)
        status = self.verify_status.get(reference, self.default_verify_status)
        return PaymentVerification(status=status, reference=reference, amount=None)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def settings():
    return Settings(
        paystack_secret_key="sk_test_1234567890",
        session_secret="test-session-secret",
        database_url="sqlite:///:memory:",
        payment_callback_url="http://testserver/payment/callback",
        payment_timeout_seconds=2.0,
        payment_customer_email="customer@example.com",
        min_order_total=100,
        currency_symbol="₦",
        seed_menu=True,
        cors_origins=["*"],
    )


@pytest.fixture
def session_factory():
    """In-memory SQLite (StaticPool) so every Session sees the same database."""
    factory = create_session_factory("sqlite:///:memory:")
    init_db(factory)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded_menu(db_session) -> List[MenuItem]:
    """The sample menu, inserted in order (ids 1-4)."""
    items = [MenuItem(**raw) for raw in SAMPLE_MENU]
    db_session.add_all(items)
    db_session.commit()
    return items


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def context(settings, session_factory, gateway):
    return AppContext(settings=settings, session_factory=session_factory, gateway=gateway)


@pytest.fixture
def app(settings, session_factory, gateway):
    return create_app(settings=settings, session_factory=session_factory, gateway=gateway)


@pytest.fixture
def client(app):
    """TestClient with the lifespan running (tables created, sample menu seeded)."""
    with TestClient(app) as test_client:
        yield test_client
