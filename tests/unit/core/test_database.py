"""Unit tests for database helpers."""
import pytest
from unittest.mock import AsyncMock

from spikebot.core.database import connect_with_retry, mask_db_url, build_engine_args


@pytest.mark.unit
@pytest.mark.asyncio
class TestConnectWithRetry:
    """Test connect_with_retry."""

    async def test_first_attempt(self):
        """✅ Success on first try → result returned, no retry."""
        connect = AsyncMock(return_value="conn")

        result = await connect_with_retry(connect, attempts=3, initial_delay=0)

        assert result == "conn"
        assert connect.call_count == 1

    async def test_recovers(self):
        """✅ Two failures then success → three attempts."""
        connect = AsyncMock(side_effect=[ConnectionError("refused"), ConnectionError("refused"), "conn"])

        result = await connect_with_retry(connect, attempts=5, initial_delay=0)

        assert result == "conn"
        assert connect.call_count == 3

    async def test_gives_up(self):
        """❌ Always failing → last error re-raised after all attempts."""
        connect = AsyncMock(side_effect=ConnectionError("refused"))

        with pytest.raises(ConnectionError, match="refused"):
            await connect_with_retry(connect, attempts=4, initial_delay=0)

        assert connect.call_count == 4


@pytest.mark.unit
class TestEngineHelpers:
    """Test URL masking and engine arguments."""

    def test_mask_password(self):
        """✅ Password hidden."""
        masked = mask_db_url("postgresql+asyncpg://spike:s3cret@db:5432/spikebot")
        assert "s3cret" not in masked
        assert masked == "postgresql+asyncpg://spike:****@db:5432/spikebot"

    def test_mask_no_password(self):
        """✅ SQLite URL unchanged."""
        assert mask_db_url("sqlite+aiosqlite:///./data/spikebot.db") == "sqlite+aiosqlite:///./data/spikebot.db"

    def test_sqlite_no_pool_sizing(self):
        """✅ SQLite → no pool sizing arguments."""
        args = build_engine_args("sqlite+aiosqlite://")
        assert "pool_size" not in args
        assert args["pool_pre_ping"] is True

    def test_postgres_pool_sizing(self):
        """✅ PostgreSQL → pool sizing arguments."""
        args = build_engine_args("postgresql+asyncpg://u:p@h/db")
        assert args["pool_size"] == 10
        assert args["max_overflow"] == 20
