"""Shared test fixtures for all test groups."""

import os
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from paygate.core.config import Settings
from paygate.core.exceptions import PaymentProviderError
from paygate.core.security import hash_password
from paygate.core.tokens import TokenService
import paygate.db.models  # noqa: F401
from paygate.db.base import Base, bind_engine, create_tables

_TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

TEST_JWT_SECRET = "test-signing-secret-0123456789abcdef"
TEST_PASSWORD = "secret123"


class FakePaymentProvider:
    """In-memory stand-in for the Mercado Pago client."""

    def __init__(self):
        self.payments: dict[str, dict] = {}
        self.preferences: list[dict] = []
        self.fetch_calls: list[str] = []
        self.fail_create = False
        self.fail_fetch = False

    def add_payment(
        self,
        payment_id: str,
        status: str,
        user_id: str | None = None,
        amount: float = 19.9,
        metadata: dict | None = None,
        external_reference: str | None = None,
    ) -> dict:
        if metadata is None:
            metadata = {"user_id": user_id} if user_id else {}
        payment = {
            "id": payment_id,
            "status": status,
            "transaction_amount": amount,
            "currency_id": "BRL",
            "metadata": metadata,
            "external_reference": external_reference,
        }
        self.payments[payment_id] = payment
        return payment

    async def create_preference(self, items, back_urls, metadata, **extra) -> dict:
        if self.fail_create:
            raise PaymentProviderError("simulated provider outage", status=503)
        self.preferences.append({"items": items, "back_urls": back_urls, "metadata": metadata, **extra})
        pref_id = f"pref-{len(self.preferences)}"
        return {
            "id": pref_id,
            "init_point": f"https://mp.test/checkout/{pref_id}",
            "sandbox_init_point": f"https://sandbox.mp.test/checkout/{pref_id}",
        }

    async def fetch_payment(self, payment_id: str) -> dict:
        self.fetch_calls.append(payment_id)
        if self.fail_fetch:
            raise PaymentProviderError("simulated provider outage", status=503)
        if payment_id not in self.payments:
            raise PaymentProviderError(f"payment {payment_id} not found", status=404)
        return dict(self.payments[payment_id])


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        debug=True,
        database_url=_TEST_DB_URL,
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        mp_access_token="TEST-access-token",
        mp_success_url="https://app.test/success",
        mp_failure_url="https://app.test/failure",
        mp_pending_url="https://app.test/pending",
        checkout_default_title="Assinatura - Pro",
        checkout_default_price=Decimal("19.90"),
        checkout_default_currency="BRL",
    )


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret=TEST_JWT_SECRET)


@pytest.fixture
def fake_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
async def engine():
    """In-memory database shared by every session in the test.

    Also installs the global session factory so route handlers can use
    get_session_factory().
    """
    engine = create_async_engine(_TEST_DB_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await create_tables(engine)
    bind_engine(engine)

    yield engine

    bind_engine(None)
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_user(session_factory):
    """Insert a user directly and return it."""
    from paygate.db.models.user import User

    async def _make(email: str = "alice@example.com", password: str = TEST_PASSWORD, paid: bool = False) -> User:
        async with session_factory() as session:
            user = User(email=email, password_hash=hash_password(password, rounds=4), paid=paid)
            session.add(user)
            await session.commit()
            return user

    return _make
