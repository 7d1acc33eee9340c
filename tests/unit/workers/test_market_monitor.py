"""Unit tests for MarketMonitor.

This module tests work-unit partitioning, per-market processing and the
cycle-level guarantees (overlap skip, failure isolation).
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy.exc import OperationalError

from spikebot.providers import ProviderError, MarketInactive, NoTrackableToken, PriceUnavailable
from spikebot.workers.alert_dispatcher import DeliveryFailed, OwnerNotFound
from spikebot.workers.market_monitor import (
    MarketMonitor,
    MarketWorkUnit,
    partition_subscriptions,
    PROCESSED,
    SKIPPED,
    NO_BASELINE,
    FAILED
)
from tests.conftest import create_subscription, create_tracking_token, create_latest_price


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def mock_provider():
    provider = MagicMock()
    provider.fetch_tracking_token = AsyncMock(return_value=create_tracking_token())
    provider.fetch_latest_price = AsyncMock(return_value=create_latest_price(price=0.52))
    return provider


@pytest.fixture
def mock_dispatcher():
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock()
    return dispatcher


@pytest.fixture
def mock_db_session():
    """Mock database session usable as an async context manager."""
    session = AsyncMock()
    session.__aenter__.return_value = session
    session.__aexit__.return_value = None
    return session


@pytest.fixture
def mock_price_service():
    with patch("spikebot.workers.market_monitor.PriceService") as svc:
        svc.append_sample = AsyncMock()
        svc.sample_near = AsyncMock(return_value=MagicMock(price=0.40))
        svc.purge_older_than = AsyncMock(return_value=0)
        yield svc


@pytest.fixture
def monitor(mock_provider, mock_dispatcher, mock_db_session):
    return MarketMonitor(
        mock_provider,
        mock_dispatcher,
        session_factory=MagicMock(return_value=mock_db_session),
        lookback_seconds=60,
        tolerance_seconds=10,
        retention_minutes=5,
        max_workers=2
    )


def unit_for(*subscriptions, market_id="101", token_id=None):
    return MarketWorkUnit(market_id=market_id, token_id=token_id, subscriptions=list(subscriptions))


# ============================================================================
# Tests for partition_subscriptions
# ============================================================================

@pytest.mark.unit
class TestPartitionSubscriptions:
    """Test partition_subscriptions."""

    def test_groups_by_market(self):
        """✅ One unit per market, every subscription exactly once."""
        subs = [
            create_subscription(id=1, market_id="202"),
            create_subscription(id=2, market_id="101"),
            create_subscription(id=3, market_id="202", user_id=2),
        ]

        units = partition_subscriptions(subs)

        assert [u.market_id for u in units] == ["101", "202"]
        assert [s.id for s in units[1].subscriptions] == [1, 3]
        assert sorted(s.id for u in units for s in u.subscriptions) == [1, 2, 3]

    def test_explicit_token_separate_unit(self):
        """✅ Explicit token → its own unit on the same market."""
        subs = [
            create_subscription(id=1, market_id="101"),
            create_subscription(id=2, market_id="101", token_id="tok-no", user_id=2),
        ]

        units = partition_subscriptions(subs)

        assert [(u.market_id, u.token_id) for u in units] == [("101", None), ("101", "tok-no")]

    def test_inactive_dropped(self):
        """✅ Inactive subscriptions never scheduled."""
        units = partition_subscriptions([create_subscription(active=False)])
        assert units == []

    def test_market_order_respected(self):
        """✅ Given market order used; unknown markets dropped."""
        subs = [create_subscription(id=1, market_id="101"), create_subscription(id=2, market_id="202")]

        units = partition_subscriptions(subs, market_ids=["202", "101", "303"])

        assert [u.market_id for u in units] == ["202", "101"]


# ============================================================================
# Tests for process_market
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestProcessMarket:
    """Test process_market."""

    async def test_triggered(self, monitor, mock_dispatcher, mock_price_service, mock_db_session):
        """✅ +30% vs 20% → dispatched."""
        sub = create_subscription(threshold_pct=20)

        result = await monitor.process_market(unit_for(sub))

        assert result.status == PROCESSED
        assert result.change_pct == pytest.approx(30.0)
        assert result.triggered == 1
        assert result.delivered == 1
        args = mock_dispatcher.dispatch.call_args.args
        assert args[0] is mock_db_session
        assert args[1] is sub
        assert args[2] == "Will it rain?"
        mock_price_service.append_sample.assert_called_once()
        assert mock_price_service.sample_near.call_args.kwargs["token_id"] == "tok-yes-101"

    async def test_below_threshold(self, monitor, mock_dispatcher, mock_price_service):
        """✅ +30% vs 50% → nothing dispatched."""
        result = await monitor.process_market(unit_for(create_subscription(threshold_pct=50)))

        assert result.status == PROCESSED
        assert result.triggered == 0
        mock_dispatcher.dispatch.assert_not_called()

    async def test_no_baseline(self, monitor, mock_dispatcher, mock_price_service):
        """✅ No sample ~60s old → sample still stored, no alert."""
        mock_price_service.sample_near.return_value = None

        result = await monitor.process_market(unit_for(create_subscription()))

        assert result.status == NO_BASELINE
        mock_price_service.append_sample.assert_called_once()
        mock_dispatcher.dispatch.assert_not_called()

    async def test_explicit_token_passed(self, monitor, mock_provider, mock_price_service):
        """✅ Unit token forwarded to the provider."""
        await monitor.process_market(unit_for(create_subscription(token_id="tok-no"), token_id="tok-no"))

        mock_provider.fetch_tracking_token.assert_called_once_with("101", "tok-no")

    @pytest.mark.parametrize("error", [NoTrackableToken("no token"), MarketInactive("resolved")])
    async def test_untrackable_skipped(self, monitor, mock_provider, mock_price_service, error):
        """✅ Inactive or tokenless market → skipped without a price fetch."""
        mock_provider.fetch_tracking_token.side_effect = error

        result = await monitor.process_market(unit_for(create_subscription()))

        assert result.status == SKIPPED
        mock_provider.fetch_latest_price.assert_not_called()
        mock_price_service.append_sample.assert_not_called()

    async def test_market_lookup_failure(self, monitor, mock_provider, mock_price_service):
        """❌ Provider error → failed."""
        mock_provider.fetch_tracking_token.side_effect = ProviderError("timeout")

        result = await monitor.process_market(unit_for(create_subscription()))

        assert result.status == FAILED

    async def test_price_failure(self, monitor, mock_provider, mock_price_service):
        """❌ Price unavailable → failed, nothing stored."""
        mock_provider.fetch_latest_price.side_effect = PriceUnavailable("bad price")

        result = await monitor.process_market(unit_for(create_subscription()))

        assert result.status == FAILED
        mock_price_service.append_sample.assert_not_called()

    async def test_store_failure(self, monitor, mock_price_service, mock_db_session):
        """❌ Database error on append → failed, session rolled back."""
        mock_price_service.append_sample.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))

        result = await monitor.process_market(unit_for(create_subscription()))

        assert result.status == FAILED
        mock_db_session.rollback.assert_called_once()

    async def test_dispatch_failure_continues(self, monitor, mock_dispatcher, mock_price_service):
        """✅ First subscriber fails, second still dispatched."""
        first = create_subscription(id=1, user_id=1)
        second = create_subscription(id=2, user_id=2)
        mock_dispatcher.dispatch.side_effect = [DeliveryFailed("blocked", MagicMock()), MagicMock()]

        result = await monitor.process_market(unit_for(first, second))

        assert mock_dispatcher.dispatch.call_count == 2
        assert result.triggered == 2
        assert result.delivered == 1

    async def test_orphaned_subscription(self, monitor, mock_dispatcher, mock_price_service):
        """✅ Owner missing → skipped, not counted as delivered."""
        mock_dispatcher.dispatch.side_effect = OwnerNotFound("gone")

        result = await monitor.process_market(unit_for(create_subscription()))

        assert result.triggered == 1
        assert result.delivered == 0


# ============================================================================
# Tests for run_cycle
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestRunCycle:
    """Test run_cycle."""

    @pytest.fixture
    def mock_subscription_service(self):
        with patch("spikebot.workers.market_monitor.SubscriptionService") as svc:
            svc.list_active = AsyncMock(return_value=[
                create_subscription(id=1, market_id="101"),
                create_subscription(id=2, market_id="202"),
            ])
            svc.list_distinct_active_market_ids = AsyncMock(return_value=["101", "202"])
            yield svc

    async def test_unexpected_error_isolated(self, monitor, mock_subscription_service, mock_price_service):
        """✅ Unexpected exception in one market → others still processed, purge runs."""
        real_process = monitor.process_market

        async def flaky(unit):
            if unit.market_id == "101":
                raise RuntimeError("boom")
            return await real_process(unit)

        with patch.object(monitor, "process_market", side_effect=flaky):
            report = await monitor.run_cycle()

        statuses = {r.market_id: r.status for r in report.results}
        assert statuses == {"101": FAILED, "202": PROCESSED}
        mock_price_service.purge_older_than.assert_called_once()

    async def test_overlap_skipped(self, monitor, mock_subscription_service, mock_price_service):
        """✅ Second cycle while first in flight → skipped, not queued."""
        gate = asyncio.Event()

        async def slow(unit):
            await gate.wait()
            return MagicMock(status=PROCESSED, triggered=0, delivered=0)

        with patch.object(monitor, "process_market", side_effect=slow):
            first = asyncio.create_task(monitor.run_cycle())
            await asyncio.sleep(0)

            second = await monitor.run_cycle()

            gate.set()
            first_report = await first

        assert second.skipped_overlap is True
        assert second.results == []
        assert first_report.skipped_overlap is False

    async def test_load_failure(self, monitor, mock_subscription_service, mock_price_service):
        """❌ Subscriptions can't be loaded → empty report, no purge."""
        mock_subscription_service.list_active.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        report = await monitor.run_cycle()

        assert report.results == []
        mock_price_service.purge_older_than.assert_not_called()

    async def test_wait_idle(self, monitor, mock_subscription_service, mock_price_service):
        """✅ wait_idle returns once no cycle runs."""
        await monitor.run_cycle()
        await asyncio.wait_for(monitor.wait_idle(), timeout=1)
