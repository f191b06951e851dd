"""Pytest configuration and fixtures."""

import os

# Settings are read at import time, so the environment is prepared first
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENABLE_METRICS", "false")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("LOG_FORMAT", "console")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Dict
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from budget_engine.database import create_engine_for_url, get_db
from budget_engine.main import app
from budget_engine.models import Base, Category, Transaction
from budget_engine.models.base import utcnow
from budget_engine.routes import cron
from budget_engine.services.batch_scheduler import BatchScheduler

# Test database URL - use environment variable or default to a private in-memory SQLite
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create a fresh database with all tables for each test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine_for_url(TEST_DATABASE_URL, poolclass=StaticPool)
    else:
        engine = create_engine_for_url(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def family_id() -> UUID:
    """ID of the family under test."""
    return uuid4()


@pytest.fixture
def user_id() -> UUID:
    """ID of the acting user."""
    return uuid4()


@pytest.fixture
async def categories(db_session: AsyncSession, family_id: UUID) -> Dict[str, Category]:
    """Create a handful of expense categories."""
    created = {
        "food": Category(family_id=family_id, name="Food", color="#22c55e", icon="utensils"),
        "dining": Category(family_id=family_id, name="Dining", color="#f97316", icon="pizza"),
        "transport": Category(family_id=None, name="Transport", color="#3b82f6", icon="car"),
        "fun": Category(family_id=family_id, name="Entertainment", color="#a855f7", icon="film"),
    }
    db_session.add_all(created.values())
    await db_session.flush()
    return created


@pytest.fixture
def add_expense(db_session: AsyncSession, family_id: UUID):
    """Factory recording an expense in the ledger."""

    async def _add(category: Category, amount, on: date, deleted: bool = False) -> Transaction:
        transaction = Transaction(
            family_id=family_id,
            category_id=category.id,
            amount=Decimal(str(amount)),
            type="EXPENSE",
            date=on,
            description="test expense",
        )
        if deleted:
            transaction.deleted_at = utcnow()
        db_session.add(transaction)
        await db_session.flush()
        return transaction

    return _add


@pytest.fixture
def family_headers(family_id: UUID, user_id: UUID):
    """Factory for gateway headers with a given role."""

    def _headers(role: str = "admin") -> Dict[str, str]:
        return {
            "X-Family-ID": str(family_id),
            "X-User-ID": str(user_id),
            "X-Family-Role": role,
        }

    return _headers


@pytest.fixture
async def async_client(
    db_session: AsyncSession, session_factory
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database session override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[cron.get_batch_scheduler] = lambda: BatchScheduler(session_factory)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
