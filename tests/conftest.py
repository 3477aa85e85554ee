"""Shared test fixtures.

Tests run against an in-memory SQLite database created from the ORM
metadata. Redis is never initialized, so rate limiting and email rate limits
are bypassed.
"""

from __future__ import annotations

import os

os.environ.setdefault("IBETU_AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("IBETU_AUTH_JWT_ALGORITHM", "HS256")
os.environ.setdefault("IBETU_LOG_FORMAT", "console")
os.environ.setdefault("IBETU_EMAIL_ENABLED", "true")

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.bets.notifier import BetNotifier, get_bet_notifier
from ibetu.config import get_settings
from ibetu.database import close_db, get_engine, get_session, init_db
from ibetu.db.base import Base
from ibetu.db.models import Bet, Friendship, User, make_pair_key
from ibetu.email.service import DeliveryStatus, EmailService, get_email_service

TEST_DB_URL = "sqlite+aiosqlite://"

get_settings.cache_clear()


def make_token(user_id: str, email: str | None = None, **claims: object) -> str:
    """Sign a provider-style token with the test secret."""
    payload = {
        "sub": user_id,
        "email": email or f"{user_id}@example.com",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, get_settings().auth_jwt_secret, algorithm="HS256")


def auth_headers(user_id: str, **claims: object) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh in-memory schema per test."""
    await init_db(TEST_DB_URL)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for setup and assertions."""
    sessions = get_session()
    session = await sessions.__anext__()
    yield session
    await sessions.aclose()


@pytest.fixture
def mock_notifier() -> MagicMock:
    """Stands in for the email notifier; records scheduled notifications."""
    return MagicMock(spec=BetNotifier)


@pytest.fixture
def mock_email_service() -> MagicMock:
    """Stands in for the email service; every delivery reports success."""
    service = MagicMock(spec=EmailService)
    service.notify = AsyncMock(return_value=DeliveryStatus.SENT)
    service.send_template = AsyncMock(return_value=DeliveryStatus.SENT)
    return service


@pytest_asyncio.fixture
async def client(database, mock_notifier, mock_email_service) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the app, without running the lifespan."""
    from ibetu.main import create_app

    app = create_app()
    app.dependency_overrides[get_bet_notifier] = lambda: mock_notifier
    app.dependency_overrides[get_email_service] = lambda: mock_email_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    async def _make(user_id: str, username: str | None = None, **fields: object) -> User:
        now = datetime.now(timezone.utc)
        user = User(
            id=user_id,
            username=username or user_id,
            display_name=fields.pop("display_name", user_id.title()),
            email=fields.pop("email", f"{user_id}@example.com"),
            created_at=now,
            updated_at=now,
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_friendship(db_session: AsyncSession) -> Callable:
    async def _make(user_id: str, friend_id: str, status: str = "accepted") -> Friendship:
        friendship = Friendship(
            user_id=user_id,
            friend_id=friend_id,
            pair_key=make_pair_key(user_id, friend_id),
            status=status,
            added_via="nickname",
            created_at=datetime.now(timezone.utc),
        )
        db_session.add(friendship)
        await db_session.commit()
        return friendship

    return _make


@pytest.fixture
def make_bet(db_session: AsyncSession) -> Callable:
    async def _make(
        creator_id: str,
        opponent_id: str,
        amount: Decimal | str = "50.00",
        status: str = "pending",
        deadline: datetime | None = None,
        **fields: object,
    ) -> Bet:
        now = datetime.now(timezone.utc)
        bet = Bet(
            title=fields.pop("title", "Who wins the match"),
            description=fields.pop("description", ""),
            amount=Decimal(str(amount)),
            creator_id=creator_id,
            opponent_id=opponent_id,
            status=status,
            deadline=deadline or now + timedelta(days=1),
            created_at=now,
            updated_at=now,
            **fields,
        )
        db_session.add(bet)
        await db_session.commit()
        return bet

    return _make


@pytest_asyncio.fixture
async def alice_and_bob(make_user, make_friendship) -> tuple[User, User]:
    """Two users with an accepted friendship."""
    alice = await make_user("alice")
    bob = await make_user("bob")
    await make_friendship("alice", "bob")
    return alice, bob
