"""Alembic environment for the spike monitor schema.

Migrations always run against ``settings.database_url``; the URL in
alembic.ini is a placeholder.
"""
import asyncio
import logging
from logging.config import fileConfig
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from alembic import context

from spikebot.core.config import settings
from spikebot.core.database import Base, mask_db_url
import spikebot.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def configure_context(**kwargs) -> None:
    """Shared migration options; batch mode keeps ALTERs working on SQLite."""
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=True,
        compare_type=True,
        **kwargs
    )


def run_migrations_offline() -> None:
    """Emit SQL for ``settings.database_url`` without connecting."""
    configure_context(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"}
    )
    with context.begin_transaction():
        context.run_migrations()


def run_sync_migrations(connection: Connection) -> None:
    configure_context(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Apply migrations over a short-lived async engine."""
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(run_sync_migrations)
    finally:
        await engine.dispose()


logger.info(f"Running migrations against {mask_db_url(settings.database_url)}")

if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
