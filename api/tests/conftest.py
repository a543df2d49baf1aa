"""Pytest configuration and shared fixtures.

This module provides:
- A throwaway SQLite database per test (aiosqlite, file-backed under tmp_path)
- Session and session-maker fixtures for repository/service tests
- An isolated EventBroadcaster per test
- FastAPI test client for route tests
- Seed fixtures for the common customer / item / job setup
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./servicebook-test.db")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

from collections.abc import AsyncGenerator, Generator
from dataclasses import dataclass
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

import models
from core.config import clear_settings_cache
from core.database import Base
from services import jobs_service
from services.events_service import EventBroadcaster
from tests.factories import (
    CategoryFactory,
    CustomerFactory,
    ItemFactory,
    JobFactory,
    create_async,
)

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Fresh file-backed SQLite database with all tables created.

    A file (not :memory:) so separate connections see the same data, which
    the services rely on when they open their own sessions.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'servicebook.db'}",
        poolclass=NullPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Session for seeding and direct repository/service calls.

    Seed data must be committed before calling services that open their
    own session.
    """
    session = session_maker()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster(queue_size=10)


@pytest.fixture(autouse=True)
def reset_job_locks() -> Generator[None]:
    """Per-job locks bind to the loop that first contends on them."""
    jobs_service._job_locks.clear()
    yield
    jobs_service._job_locks.clear()


async def count_service_history(
    session_maker: async_sessionmaker[AsyncSession], job_id: int
) -> int:
    """Count history rows for a job from a fresh session."""
    async with session_maker() as session:
        result = await session.execute(
            select(func.count())
            .select_from(models.ServiceHistory)
            .where(models.ServiceHistory.job_id == job_id)
        )
        return result.scalar_one()


# =============================================================================
# Seed Fixtures
# =============================================================================


@dataclass(frozen=True)
class Seed:
    customer_id: int
    category_id: int
    item_id: int
    job_id: int


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> Seed:
    """One customer, one category, one item (60 + 40, tier "better") and a
    scheduled job, committed."""
    customer = await create_async(CustomerFactory, db_session)
    category = await create_async(CategoryFactory, db_session)
    item = await create_async(ItemFactory, db_session, category_id=category.id)
    job = await create_async(JobFactory, db_session, customer_id=customer.id)
    await db_session.commit()
    return Seed(
        customer_id=customer.id,
        category_id=category.id,
        item_id=item.id,
        job_id=job.id,
    )


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def app(
    test_engine: AsyncEngine,
    session_maker: async_sessionmaker[AsyncSession],
    broadcaster: EventBroadcaster,
) -> AsyncGenerator[FastAPI]:
    """FastAPI app wired to the test database and broadcaster."""
    # Import here so DATABASE_URL is set before Settings are first read
    from main import app as fastapi_app

    fastapi_app.state.engine = test_engine
    fastapi_app.state.session_maker = session_maker
    fastapi_app.state.broadcaster = broadcaster
    fastapi_app.state.init_done = True
    fastapi_app.state.init_error = None

    yield fastapi_app


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for testing routes."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None]:
    """Reset settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
