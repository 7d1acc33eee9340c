"""Database setup with async SQLAlchemy for PostgreSQL (SQLite for local runs)."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log
)
from spikebot.core.config import settings
import logging
import re
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Mask password in database URL for logging
def mask_db_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:****@', url)


def build_engine_args(database_url: str) -> dict:
    """Engine keyword arguments; pool sizing only applies to server databases."""
    engine_args: dict = {
        "echo": settings.log_level == "DEBUG",  # Log all SQL if DEBUG
        "pool_pre_ping": True,  # Verify connections before using
    }
    if not database_url.startswith("sqlite"):
        engine_args.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 3600,
        })
    return engine_args


logger.info(f"Configuring database: {mask_db_url(settings.database_url)}")

engine = create_async_engine(
    settings.database_url,
    **build_engine_args(settings.database_url)
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def connect_with_retry(
    connect: Callable[[], Awaitable[T]],
    attempts: int = 5,
    initial_delay: float = 2.0,
    max_delay: float = 60.0,
    description: str = "database"
) -> T:
    """
    Run ``connect`` until it succeeds, backing off exponentially between attempts.

    The delay starts at ``initial_delay`` seconds and doubles after every
    failure, capped at ``max_delay``. After ``attempts`` failures the last
    exception is re-raised unchanged.

    Args:
        connect: Zero-argument coroutine function performing the connection
        attempts: Maximum number of attempts (including the first)
        initial_delay: Delay before the second attempt
        max_delay: Upper bound for any single delay
        description: Label used in log messages

    Returns:
        Whatever ``connect`` returns on success
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=initial_delay, min=initial_delay, max=max_delay),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )

    async for attempt in retrying:
        with attempt:
            n = attempt.retry_state.attempt_number
            logger.info(f"Connecting to {description} (attempt {n}/{attempts})")
            result = await connect()

    logger.info(f"Connected to {description}")
    return result


async def init_db():
    """Initialize database tables."""
    # Register models with Base.metadata
    import spikebot.models  # noqa: F401

    logger.info("Initializing database tables...")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {str(e)}", exc_info=True)
        logger.debug(f"Database URL (masked): {mask_db_url(settings.database_url)}")
        raise


async def close_db():
    """Dispose the engine and its connection pool."""
    logger.info("Closing database connections")
    await engine.dispose()
