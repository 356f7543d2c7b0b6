import os

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Settings are read at import time; point them at SQLite BEFORE importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from brandforge.config import VideoConfig
from brandforge.database import Base, get_db, get_session_factory
from brandforge.dependencies import get_blob_store, get_registry, get_video_config
from brandforge.main import app
from brandforge.providers.registry import ProviderRegistry
from factories import FakeBlobStore, FakeVideoProvider, create_user


# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def video_config():
    """Config with no waiting between polls."""
    return VideoConfig(poll_interval_seconds=0, poll_max_attempts=5)


@pytest.fixture
def fake_provider():
    return FakeVideoProvider("openai")


@pytest.fixture
def registry(fake_provider):
    return ProviderRegistry([fake_provider, FakeVideoProvider("wavespeed")])


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
async def test_db():
    """Create a fresh test database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: async_session

    yield async_session

    app.dependency_overrides.clear()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def client(test_db, registry, video_config, blob_store):
    """Create an async test client with fake providers and blob storage."""
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_video_config] = lambda: video_config
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def user(test_db):
    async with test_db() as session:
        return await create_user(session)


@pytest.fixture
async def admin(test_db):
    async with test_db() as session:
        return await create_user(session, email="admin@example.com", is_admin=True)
