"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) for the submission
ledger, a dict-backed stand-in for Redis and a canned storefront client, so
tests run without Docker / PostgreSQL / Redis / the storefront backend.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import Base
from tests.factories import (
    FakeRedis,
    FakeStorefrontClient,
    TestSessionFactory,
    test_engine,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def storefront() -> FakeStorefrontClient:
    return FakeStorefrontClient()
