"""Shared pytest fixtures: a file-backed SQLite database per test and an ASGI client."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.api.app.core.config import Settings, get_settings
from apps.api.app.core.security import create_operator_token
from apps.api.app.db import dispose_engine, get_sessionmaker, init_db
from apps.api.app.domain.subscriptions import SubscriptionStatus
from apps.api.app.repositories.subscriptions import SqlAlchemySubscriptionsRepository


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Point the application at a fresh SQLite file with fast polling intervals."""

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'newsletter.db'}")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("DELIVERY_MAX_RETRIES", "3")
    monkeypatch.setenv("DELIVERY_RETRY_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("DELIVERY_POLL_INTERVAL_SECONDS", "0.01")
    monkeypatch.setenv("DELIVERY_ERROR_BACKOFF_SECONDS", "0.01")
    monkeypatch.setenv("IDEMPOTENCY_WAIT_TIMEOUT_SECONDS", "2")
    monkeypatch.setenv("IDEMPOTENCY_POLL_INTERVAL_SECONDS", "0.01")
    monkeypatch.setenv("EMAIL_BASE_URL", "http://email.test")
    monkeypatch.setenv("EMAIL_SENDER", "newsletter@example.com")
    monkeypatch.setenv("EMAIL_AUTHORIZATION_TOKEN", "server-token")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def session_factory(settings: Settings) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    await init_db()
    yield get_sessionmaker()
    await dispose_engine()


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture
def add_subscriber(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[None]]:
    async def _add(
        email: str,
        name: str = "Subscriber",
        status: SubscriptionStatus = SubscriptionStatus.CONFIRMED,
    ) -> None:
        async with session_factory() as db_session:
            await SqlAlchemySubscriptionsRepository(db_session).add(email, name, status)

    return _add


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def auth_headers(settings: Settings, owner_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_operator_token(owner_id)}"}


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    from apps.api.app.main import create_app

    app = create_app(create_tables=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
