"""
Pytest configuration and fixtures for testing
"""
import os

# Must be set before any app module reads its settings
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LOG_FILE"] = ""
os.environ["APP_URL"] = "http://app.test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_onboarding"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_PRO_PAYMENT_LINK"] = "https://buy.stripe.com/test_pro"
os.environ["STRIPE_ENTERPRISE_PAYMENT_LINK"] = "https://buy.stripe.com/test_enterprise"
os.environ["STRIPE_PRICE_PRO"] = "price_pro"
os.environ["STRIPE_PRICE_ENTERPRISE"] = "price_enterprise"

from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.db import get_db
from app.db.database import Base
from app.models import Subscription, User, UserTrial
from app.routers.onboarding import get_session_factory
from app.services.firebase import get_current_user, get_current_user_or_create, get_optional_user
from app.services.onboarding.plan_selection import plan_selection_recorder
from app.services.preferences import preference_store
from main import app


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite per test so every session gets its own connection."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_onboarding_state():
    """Module-level services outlive a test; user ids repeat across databases."""
    preference_store.cache.clear()
    plan_selection_recorder._in_flight.clear()
    yield
    preference_store.cache.clear()
    plan_selection_recorder._in_flight.clear()


async def _create_user(
    db: AsyncSession,
    email: str = "new.user@example.com",
    trial_hours: int | None = None,
    subscription_status: str | None = None,
) -> User:
    user = User(firebase_uid=f"uid-{email}", email=email, name="Test User")
    db.add(user)
    await db.flush()

    if trial_hours is not None:
        start = datetime.utcnow() - timedelta(hours=1)
        db.add(
            UserTrial(
                user_id=user.id,
                trial_start_time=start,
                trial_end_time=start + timedelta(hours=trial_hours),
            )
        )

    if subscription_status is not None:
        db.add(
            Subscription(
                user_id=user.id,
                stripe_customer_id="cus_test",
                stripe_subscription_id="sub_test",
                plan_id="pro",
                status=subscription_status,
            )
        )

    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
def make_user(db):
    """Create a user; optionally with a trial window and a subscription row."""

    async def _make_user(**kwargs) -> User:
        return await _create_user(db, **kwargs)

    return _make_user


@pytest.fixture
async def user(make_user):
    """Signed-up user with no trial and no subscription"""
    return await make_user()


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def sign_in():
    """Make every auth dependency resolve to ``user``; None signs out."""

    def _sign_in(user: User | None):
        if user is None:
            app.dependency_overrides[get_optional_user] = lambda: None
            app.dependency_overrides.pop(get_current_user, None)
            app.dependency_overrides.pop(get_current_user_or_create, None)
            return
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_current_user_or_create] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user

    return _sign_in
