"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from decimal import Decimal

# Configure before anything imports xnrt.main (module-level create_app).
os.environ["XNRT_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["XNRT_REDIS_URL"] = ""
os.environ["XNRT_SEED_CATALOG_ON_STARTUP"] = "false"
os.environ["XNRT_LOG_FORMAT"] = "console"

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from xnrt.config import get_settings  # noqa: E402

get_settings.cache_clear()

from xnrt.auth.jwt import create_access_token  # noqa: E402
from xnrt.database import Database  # noqa: E402
from xnrt.db.models import User  # noqa: E402
from xnrt.ledger.service import Account, create_balance, credit  # noqa: E402
from xnrt.main import create_app  # noqa: E402
from xnrt.referrals.codes import generate_referral_code  # noqa: E402
from xnrt.referrals.service import assign_referrer  # noqa: E402


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Fresh in-memory database with the full schema."""
    db = Database(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async with database.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(database: Database) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against an app wired to the test database, without Redis."""
    app = create_app()
    app.state.database = database
    app.state.redis = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_user(
    db: AsyncSession,
    username: str,
    *,
    referrer: User | None = None,
    is_admin: bool = False,
) -> User:
    """Create a user with a zeroed balance, optionally under ``referrer``."""
    user = User(
        email=f"{username}@example.com",
        username=username,
        password_hash="not-a-real-hash",
        referral_code=generate_referral_code(),
        is_admin=is_admin,
    )
    db.add(user)
    await db.flush()
    await create_balance(db, user.id)
    if referrer is not None:
        await assign_referrer(db, user, referrer.referral_code)
    return user


async def fund(db: AsyncSession, user: User, amount: str, account: Account = Account.MAIN) -> None:
    """Credit ``amount`` XNRT to ``user`` as an earning."""
    await credit(db, user.id, account, Decimal(amount))


def auth_headers(user: User) -> dict[str, str]:
    """Bearer header for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(user.id, user.is_admin)}"}
