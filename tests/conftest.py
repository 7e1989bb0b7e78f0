import os
import tempfile

os.environ.setdefault("DATABASE_ASYNC_URL", "sqlite+aiosqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="learnhub-uploads-"))
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MAIL_SUPPRESS_SEND", "true")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.enum import PaymentStatus, Region
from app.db.models.init_db import init_models
from app.db.session import get_session
from app.main import app
from app.services.shares.mailer import get_mailer_service
from app.services.shares.payment_providers import (
    CheckoutResult,
    PaymentProviders,
    get_payment_providers,
)
from app.services.shares.paymob_provider import PaymobProvider
from app.services.shares.region import get_region_resolver
from app.services.shares.stripe_provider import StripeProvider

WEBHOOK_SECRET = "whsec_test_secret"


class FakeMailer:
    def __init__(self):
        self.sent: list[tuple[str, str, str, str]] = []

    async def send_verification_email(self, email, name, verify_link):
        self.sent.append(("verify", email, name, verify_link))

    async def send_reset_password_email(self, email, name, reset_link):
        self.sent.append(("reset", email, name, reset_link))


class FakeStripe(StripeProvider):
    """Real webhook verification, no network for checkout or polling."""

    def __init__(self):
        super().__init__(secret_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)
        self.checkouts = []
        self.remote_status = PaymentStatus.PENDING

    async def create_checkout(self, req):
        self.checkouts.append(req)
        return CheckoutResult(
            checkout_url=f"https://checkout.stripe.test/{req.payment_id}",
            provider_order_id=f"cs_test_{req.payment_id}",
        )

    async def poll_status(self, provider_order_id):
        return self.remote_status


class FakeRegion:
    def __init__(self):
        self.region = Region.INTL

    async def detect(self, ip):
        return self.region


class Fakes:
    def __init__(self):
        self.mailer = FakeMailer()
        self.stripe = FakeStripe()
        self.region = FakeRegion()
        # handler for the Paymob httpx mock; default answers every call with 500
        self.paymob_handler = lambda request: httpx.Response(500, json={"detail": "down"})


@pytest.fixture
def fakes():
    return Fakes()


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory, fakes):
    async def override_session():
        async with session_factory() as session:
            yield session

    paymob_http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: fakes.paymob_handler(request))
    )

    def override_providers():
        return PaymentProviders(stripe=fakes.stripe, paymob=PaymobProvider(http=paymob_http))

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_mailer_service] = lambda: fakes.mailer
    app.dependency_overrides[get_payment_providers] = override_providers
    app.dependency_overrides[get_region_resolver] = lambda: fakes.region

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    await paymob_http.aclose()
