"""pytest fixtures shared across all tests."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from idbridge.core.auth import hash_password
from idbridge.core.config import get_settings
from idbridge.identity.stores import SqlRoleStore
from idbridge.models.base import Base
from idbridge.models.user import User

# Use SQLite in-memory for tests, no PostgreSQL required.
# Each test function gets its own fresh DB to avoid cross-test pollution.
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_EMAIL = "admin@test.local"
ADMIN_PASSWORD = "admin-password"


@pytest.fixture
def settings_env(monkeypatch):
    """Set environment variables and rebuild the cached Settings."""
    def _apply(**values: str) -> None:
        for key, value in values.items():
            monkeypatch.setenv(key.upper(), value)
        get_settings.cache_clear()

    get_settings.cache_clear()
    yield _apply
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory SQLite engine per test function."""
    eng = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Yield an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def roles(db_session):
    """Seed the standard roles plus a 'viewer' role used by mapping tests."""
    store = SqlRoleStore(db_session)
    await store.ensure(["owner", "admin", "member", "viewer"])
    return {r.slug: r for r in await store.list_all()}


@pytest_asyncio.fixture
async def admin_user(db_session, roles):
    user = User(
        email=ADMIN_EMAIL,
        first_name="Admin",
        last_name="",
        hashed_password=hash_password(ADMIN_PASSWORD),
        role=roles["admin"],
        is_active=True,
        auth_provider="local",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def app(session_factory):
    """FastAPI app wired to the test DB.

    The external directory is disabled unless a test overrides
    ``get_user_directory`` itself.
    """
    from idbridge.api.app import create_app
    from idbridge.api.dependencies import get_db, get_user_directory
    from idbridge.core.limiter import limiter

    application = create_app()
    limiter.enabled = False

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_db
    application.dependency_overrides[get_user_directory] = lambda: None
    yield application
    limiter.enabled = True


@pytest_asyncio.fixture
async def client(app):
    """HTTPX async test client for the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def login(client):
    """POST the OAuth2 login form."""
    async def _login(email: str, password: str):
        return await client.post(
            "/api/v1/auth/login", data={"username": email, "password": password}
        )

    return _login
