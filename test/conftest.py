from __future__ import annotations

import os
from typing import AsyncGenerator, Iterable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel.pool import StaticPool

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Set test environment before importing the application
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-binevo-unit-tests")
os.environ.setdefault("APP_URL", "http://localhost:3000")
os.environ.setdefault("STRIPE_API_BASE", "http://mock-stripe/v1")
os.environ.setdefault("UPLOAD_DIR", "/tmp/binevo-test-uploads")


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "/",  # Allow relative paths (used by ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)


@pytest.fixture(autouse=True)
def _reset_stripe_keys_cache():
    from binevo.payments.stripe_keys import invalidate_stripe_keys_cache

    invalidate_stripe_keys_cache()
    yield
    invalidate_stripe_keys_cache()


@pytest_asyncio.fixture
async def test_engine():
    """A fresh in-memory database per test."""
    from binevo.core.database import create_all

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(name="session")
async def session_fixture(test_engine) -> AsyncGenerator[AsyncSession, None]:
    from binevo.core.database import create_sessionmaker

    async with create_sessionmaker(test_engine)() as session:
        yield session


@pytest_asyncio.fixture
async def ngo(session: AsyncSession):
    from binevo.core.database.entities import Ngo

    row = Ngo(
        name="Asociatia Speranta",
        slug="asociatia-speranta",
        email="contact@speranta.ro",
        cui="RO12345678",
        address="Str. Lalelelor 1",
        city="Cluj-Napoca",
        county="Cluj",
    )
    session.add(row)
    await session.commit()
    return row


@pytest_asyncio.fixture
async def ngo_admin(session: AsyncSession, ngo):
    from binevo.core.database.entities import User
    from binevo.server.core.security import hash_password

    user = User(
        email="admin@speranta.ro",
        password_hash=hash_password("Parola123!"),
        name="Ana Popescu",
        role="NGO_ADMIN",
        ngo_id=ngo.id,
    )
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def super_admin(session: AsyncSession):
    from binevo.core.database.entities import User
    from binevo.server.core.security import hash_password

    user = User(
        email="root@binevo.ro",
        password_hash=hash_password("Parola123!"),
        name="Platform Admin",
        role="SUPER_ADMIN",
    )
    session.add(user)
    await session.commit()
    return user


def auth_headers_for(user) -> dict:
    from binevo.server.core.security import create_access_token

    token = create_access_token(user.id, role=user.role, ngo_id=user.ngo_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_auth_headers():
    return auth_headers_for


@pytest.fixture
def auth_headers(ngo_admin) -> dict:
    return auth_headers_for(ngo_admin)


@pytest.fixture
def admin_headers(super_admin) -> dict:
    return auth_headers_for(super_admin)
