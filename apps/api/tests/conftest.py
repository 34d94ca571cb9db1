from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.future import select

from config import settings
from database import Base, get_db
from main import app
from models.subscription_plan import SubscriptionPlan
from models.user import User
from models.user_subscription import UserSubscription
from routers import rate_limit
from services.catalog import seed_catalog
from services.clock import fixed_clock, get_clock
from services.credits import get_or_create_account
from services.session_token import SESSION_TOKEN_TYPE


FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """Per-test SQLite database with the service catalog and plans seeded."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ideaflow.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with maker() as session:
        await seed_catalog(session)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock(FIXED_NOW)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def issue_session_token(
    user_id: str,
    *,
    token_type: str = SESSION_TOKEN_TYPE,
    ttl: timedelta = timedelta(hours=1),
    **claims,
) -> str:
    """Sign a token the way the identity service does."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(user_id: str) -> dict:
    token = issue_session_token(user_id, email=f"{user_id}@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(session_maker):
    """Create a user with a lazily opened credit account (signup bonus included)."""

    async def _make(user_id: str) -> User:
        async with session_maker() as session:
            user = User(id=user_id, email=f"{user_id}@example.com")
            session.add(user)
            await session.flush()
            await get_or_create_account(user_id, session)
            await session.commit()
            return user

    return _make


@pytest.fixture
def subscribe(session_maker):
    """Attach an active subscription row without granting plan credits."""

    async def _subscribe(user_id: str, plan_name: str, **fields) -> UserSubscription:
        async with session_maker() as session:
            plan = (
                await session.execute(select(SubscriptionPlan).where(SubscriptionPlan.name == plan_name))
            ).scalar_one()
            subscription = UserSubscription(
                user_id=user_id,
                plan_id=plan.id,
                is_active=True,
                auto_renew=True,
                start_date=FIXED_NOW,
                **fields,
            )
            session.add(subscription)
            await session.commit()
            return subscription

    return _subscribe
