"""Pytest configuration and shared fixtures for the Query Pager tests."""

import logging
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from querypager.core.cache import MemoryCacheStore, get_cache
from querypager.core.config import settings
from querypager.db.base import Base, get_db
from querypager.domain.vendor import Vendor
from querypager.main import create_app

# Disable logging for cleaner test output
logging.getLogger("aiosqlite").setLevel(logging.WARNING)

SEED_COUNT = 25
SEED_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_vendor(i: int) -> Vendor:
    """Vendor 00..24: every third suspended, rating i % 5, one day apart."""
    return Vendor(
        client_id=settings.default_client_id,
        company_name=f"Vendor {i:02d}",
        contact_name=f"Contact {i:02d}",
        contact_email=f"contact{i:02d}@example.com",
        address_state="CA" if i % 2 == 0 else "NY",
        status="suspended" if i % 3 == 0 else "active",
        rating=i % 5,
        created_at=SEED_START + timedelta(days=i),
        updated_at=SEED_START + timedelta(days=i),
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seeded(session_factory) -> None:
    async with session_factory() as session:
        session.add_all([make_vendor(i) for i in range(SEED_COUNT)])
        await session.commit()


@pytest.fixture
async def session(session_factory, seeded) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache() -> MemoryCacheStore:
    return MemoryCacheStore(max_entries=64)


@pytest.fixture
async def client(session_factory, seeded, cache) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the test database and cache."""
    app = create_app()

    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_cache] = lambda: cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
