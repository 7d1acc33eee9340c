"""Pytest fixtures for database-backed integration tests.

Every test gets its own in-memory SQLite database. All sessions share a
single connection through StaticPool, so monitor tests that open several
sessions must run with one worker.
"""
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from spikebot.core.database import Base
import spikebot.models  # noqa: F401
import logging

logger = logging.getLogger(__name__)


@pytest.fixture(scope="function")
async def test_engine():
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.debug("Test engine created")
    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory configured like the application's."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


@pytest.fixture(scope="function")
async def test_db(session_factory):
    """Database session for one test."""
    async with session_factory() as session:
        yield session
