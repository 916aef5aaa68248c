"""
Pytest fixtures for testing.

Provides:
- Async database session on in-memory SQLite
- Test client with database session override
- Flag/rule builders for engine tests
"""

import os

# Settings are read at import time; point them at test values first.
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("FEATURE_BACKEND", "database")
os.environ.setdefault("FEATURE_CACHE_TTL", "0")

from datetime import datetime, timezone
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from groundcontrol.main import app
from groundcontrol.models.base import Base
from groundcontrol.api.dependencies.database import get_db
from groundcontrol.core.features import models  # noqa: F401 - registers tables
from groundcontrol.core.features.enums import DataType, FlagType, Operator
from groundcontrol.core.features.interfaces import Condition, FeatureFlag, RolloutRule


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create database session with automatic rollback.

    Each test gets a fresh transaction that's rolled back after.
    """
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database session override.
    """

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ Builders ============


def make_rule(**kwargs) -> RolloutRule:
    """Active rule with a fresh id; override any field."""
    kwargs.setdefault("id", uuid4())
    return RolloutRule(**kwargs)


def make_flag(*rules: RolloutRule, **kwargs) -> FeatureFlag:
    """Enabled BOOLEAN flag defaulting to False."""
    kwargs.setdefault("code", "test_flag")
    kwargs.setdefault("name", "Test flag")
    kwargs.setdefault("value_type", FlagType.BOOLEAN)
    kwargs.setdefault("value", False)
    kwargs.setdefault("enabled", True)
    return FeatureFlag(rollout_rules=rules, **kwargs)


def cond(attribute: str, operator: Operator, value, data_type: DataType) -> Condition:
    return Condition(attribute=attribute, operator=operator, value=value, data_type=data_type)


@pytest.fixture
def now() -> datetime:
    return NOW
