"""
Centralized Test Configuration.

Every test runs against a fresh SQLite file. A file (not :memory: with a
shared connection) is used because audit entries are written from their own
sessions in background tasks, concurrently with the request's session.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from school_backend.app.main import app
from school_backend.app.core.config import settings
from school_backend.app.db.bootstrap import seed_default_admin
from school_backend.app.db.session import get_db, Base

ADMIN_PASSWORD = settings.default_admin_password
STAFF_PASSWORD = "StaffPass1"


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    database_path = tmp_path_factory.mktemp("db") / "test.db"
    return create_async_engine(
        f"sqlite+aiosqlite:///{database_path}",
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )


@pytest.fixture(scope="session")
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(session_factory):
    """Point the request sessions and the audit writer at the test database."""
    audit_trail = app.state.audit_trail
    original_factory = audit_trail.session_factory

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    audit_trail.session_factory = session_factory
    yield

    app.dependency_overrides = {}
    audit_trail.session_factory = original_factory


@pytest.fixture(autouse=True)
async def setup_database(test_engine, session_factory, tmp_path, monkeypatch):
    """Create tables and the default admin before each test, drop them after."""
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with session_factory() as session:
        await seed_default_admin(session)

    await app.state.rate_limiter.reset()

    yield

    await app.state.audit_trail.drain()
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def login(client):
    """Log in through the API and return the bearer token."""
    async def _login(username: str, password: str) -> str:
        response = await client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["token"]

    return _login


@pytest.fixture
async def admin_token(login):
    return await login(settings.default_admin_username, ADMIN_PASSWORD)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
async def staff_headers(client, login, admin_headers):
    """Create a staff account through the API and log in as it."""
    response = await client.post("/api/users", headers=admin_headers, json={
        "username": "staffer",
        "password": STAFF_PASSWORD,
        "role": "staff",
    })
    assert response.status_code == 201, response.text
    token = await login("staffer", STAFF_PASSWORD)
    return {"Authorization": f"Bearer {token}"}
