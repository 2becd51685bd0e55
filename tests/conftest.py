"""
Shared fixtures: in-memory database, recording notifier and an API client.

Environment overrides are applied before any ``app`` module is imported so the
cached settings pick them up.
"""

import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("CLEANUP_ENABLED", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="accounts-uploads-"))
os.environ.setdefault("APP_URL", "http://testserver")

from typing import List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  register tables
from app.core.rate_limiter import rate_limiter
from app.db.session import Base, configure_sqlite, get_db
from app.services.email_service import NotificationEvent


class RecordingSink:
    """Notification sink that keeps every event for inspection."""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)

    @property
    def last(self) -> NotificationEvent:
        return self.events[-1]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture(autouse=True)
def clear_rate_limits():
    rate_limiter._requests.clear()
    yield
    rate_limiter._requests.clear()


@pytest_asyncio.fixture
async def client(session_factory, sink):
    from app.core.dependencies import get_delivery_sink
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_delivery_sink] = lambda: sink

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
