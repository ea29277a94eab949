# tests/conftest.py
"""
Shared fixtures.

Environment is set before anything from clubhub is imported: settings are read
once at import time. Every test gets its own SQLite file and upload directory.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from asgi_lifespan import LifespanManager  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from clubhub.core.clock import utcnow  # noqa: E402
from clubhub.core.config import settings  # noqa: E402
from clubhub.core.db import Base, get_db  # noqa: E402
from clubhub.core.security import create_access_token, hash_password  # noqa: E402
from clubhub.models.event import Event  # noqa: E402
from clubhub.models.user import User  # noqa: E402
from clubhub.services.email import transport_cache  # noqa: E402
from clubhub.services.registrations import install_registration_hooks  # noqa: E402

DEFAULT_PASSWORD = "Secret123"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture(autouse=True)
def fresh_transport_cache():
    transport_cache.invalidate()
    yield
    transport_cache.invalidate()


@pytest.fixture(autouse=True)
def registration_hooks():
    install_registration_hooks()


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def app(session_factory):
    from clubhub.main import app as fastapi_app

    async def _get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _get_db
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app):
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    async def _make(role: str = "member", *, verified: bool = True, email: str | None = None, **kw) -> User:
        counter["n"] += 1
        async with session_factory() as session:
            user = User(
                name=kw.pop("name", f"User {counter['n']}"),
                email=email or f"user{counter['n']}@example.com",
                password_hash=hash_password(kw.pop("password", DEFAULT_PASSWORD)),
                role=role,
                email_verified_at=utcnow() if verified else None,
                **kw,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def make_event(session_factory):
    async def _make(**kw) -> Event:
        data = {
            "title": "Welcome Night",
            "description": "Meet the society",
            "date": utcnow() + timedelta(days=7),
            "location": "Main Hall",
            "category": "Social",
            "type": "event",
        }
        data.update(kw)
        async with session_factory() as session:
            event = Event(**data)
            session.add(event)
            await session.commit()
            return event

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token(user_id=user.id, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers
