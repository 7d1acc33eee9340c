"""Monitoring cycle: sample prices, detect spikes, dispatch alerts."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from spikebot.core.config import settings
from spikebot.core.database import AsyncSessionLocal
from spikebot.models import Subscription
from spikebot.providers import (
    MarketDataProvider,
    ProviderError,
    MarketInactive,
    NoTrackableToken
)
from spikebot.services import SubscriptionService, PriceService, detect
from spikebot.services.spike_detector import percent_change
from spikebot.workers.alert_dispatcher import AlertDispatcher, DispatchError, OwnerNotFound

logger = logging.getLogger(__name__)

# Per-market outcomes
PROCESSED = "processed"
SKIPPED = "skipped"
NO_BASELINE = "no_baseline"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass
class MarketWorkUnit:
    """Subscriptions sharing one market and one tracking token choice."""
    market_id: str
    token_id: Optional[str]  # explicit token, None means the market's default
    subscriptions: List[Subscription] = field(default_factory=list)


@dataclass
class MarketResult:
    market_id: str
    status: str
    change_pct: Optional[float] = None
    triggered: int = 0
    delivered: int = 0


@dataclass
class CycleReport:
    """Summary of one monitoring cycle."""
    subscriptions: int = 0
    markets: int = 0
    results: List[MarketResult] = field(default_factory=list)
    purged: int = 0
    cancelled: bool = False
    skipped_overlap: bool = False

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def triggered(self) -> int:
        return sum(r.triggered for r in self.results)

    @property
    def delivered(self) -> int:
        return sum(r.delivered for r in self.results)


def partition_subscriptions(
    subscriptions: Iterable[Subscription],
    market_ids: Optional[List[str]] = None
) -> List[MarketWorkUnit]:
    """
    Split active subscriptions into disjoint work units.

    Subscriptions are grouped by market and explicit token. Units come out in
    ``market_ids`` order when given (markets missing from it are dropped),
    otherwise sorted by market ID.
    """
    groups: Dict[Tuple[str, Optional[str]], List[Subscription]] = {}
    for sub in subscriptions:
        if not sub.active:
            continue
        key = (sub.market_id, sub.token_id or None)
        groups.setdefault(key, []).append(sub)

    if market_ids is None:
        market_ids = sorted({market_id for market_id, _ in groups})
    position = {market_id: i for i, market_id in enumerate(market_ids)}

    keys = sorted(
        (key for key in groups if key[0] in position),
        key=lambda k: (position[k[0]], k[1] or "")
    )
    return [MarketWorkUnit(market_id=m, token_id=t, subscriptions=groups[(m, t)]) for m, t in keys]


class MarketMonitor:
    """Runs monitoring cycles over all markets with active subscriptions."""

    def __init__(
        self,
        provider: MarketDataProvider,
        dispatcher: AlertDispatcher,
        session_factory=None,
        lookback_seconds: Optional[int] = None,
        tolerance_seconds: Optional[int] = None,
        retention_minutes: Optional[int] = None,
        max_workers: Optional[int] = None
    ):
        self.provider = provider
        self.dispatcher = dispatcher
        self.session_factory = session_factory or AsyncSessionLocal
        self.lookback = timedelta(seconds=lookback_seconds or settings.lookback_seconds)
        self.tolerance = timedelta(
            seconds=settings.lookback_tolerance_seconds if tolerance_seconds is None else tolerance_seconds
        )
        self.retention = timedelta(minutes=retention_minutes or settings.price_retention_minutes)
        self.max_workers = max_workers or settings.market_workers
        self._stop = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

    def stop(self):
        """Ask the running cycle to stop before its next market."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def wait_idle(self):
        """Wait for an in-flight cycle to finish."""
        async with self._cycle_lock:
            pass

    async def run_cycle(self) -> CycleReport:
        """
        Run one monitoring cycle.

        Returns immediately with ``skipped_overlap`` set if a previous cycle
        is still in flight.
        """
        if self._cycle_lock.locked():
            logger.warning("Previous monitoring cycle still running, skipping this one")
            return CycleReport(skipped_overlap=True)

        async with self._cycle_lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> CycleReport:
        report = CycleReport()
        logger.debug("Starting monitoring cycle...")

        try:
            async with self.session_factory() as db:
                subscriptions = await SubscriptionService.list_active(db)
                if not subscriptions:
                    logger.debug("No active alerts to monitor")
                    return report
                market_ids = await SubscriptionService.list_distinct_active_market_ids(db)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load active alerts: {e}")
            return report

        units = partition_subscriptions(subscriptions, market_ids)
        report.subscriptions = len(subscriptions)
        report.markets = len(market_ids)
        logger.debug(f"Monitoring {len(market_ids)} markets with {len(subscriptions)} alerts")

        semaphore = asyncio.Semaphore(self.max_workers)

        async def run_unit(unit: MarketWorkUnit) -> MarketResult:
            async with semaphore:
                if self._stop.is_set():
                    return MarketResult(market_id=unit.market_id, status=CANCELLED)
                try:
                    return await self.process_market(unit)
                except Exception as e:
                    logger.error(f"Error checking market {unit.market_id}: {e}", exc_info=True)
                    return MarketResult(market_id=unit.market_id, status=FAILED)

        report.results = list(await asyncio.gather(*(run_unit(unit) for unit in units)))

        if self._stop.is_set():
            report.cancelled = True
            logger.info("Monitoring cycle cancelled")
            return report

        try:
            async with self.session_factory() as db:
                report.purged = await PriceService.purge_older_than(db, self.retention)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to cleanup old prices: {e}")

        logger.info(
            f"Monitoring cycle completed: {report.markets} markets, "
            f"{report.triggered} alerts triggered, {report.delivered} delivered"
        )
        return report

    async def process_market(self, unit: MarketWorkUnit) -> MarketResult:
        """
        Sample one market's price and dispatch any alerts it triggers.

        Args:
            unit: Work unit with the market's subscriptions

        Returns:
            MarketResult describing how far processing got
        """
        market_id = unit.market_id

        try:
            tracking = await self.provider.fetch_tracking_token(market_id, unit.token_id)
        except (NoTrackableToken, MarketInactive) as e:
            logger.info(f"Skipping market {market_id}: {e}")
            return MarketResult(market_id=market_id, status=SKIPPED)
        except ProviderError as e:
            logger.warning(f"Failed to get market details for {market_id}: {e}")
            return MarketResult(market_id=market_id, status=FAILED)

        try:
            quote = await self.provider.fetch_latest_price(tracking.token_id)
        except ProviderError as e:
            logger.warning(f"Failed to get token price for {tracking.token_id}: {e}")
            return MarketResult(market_id=market_id, status=FAILED)

        async with self.session_factory() as db:
            try:
                await PriceService.append_sample(
                    db,
                    token_id=tracking.token_id,
                    market_id=market_id,
                    price=quote.price,
                    side=quote.side,
                    size=quote.size
                )
                baseline = await PriceService.sample_near(
                    db,
                    market_id,
                    target_age=self.lookback,
                    tolerance=self.tolerance,
                    token_id=tracking.token_id
                )
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to store or look up price for market {market_id}: {e}")
                return MarketResult(market_id=market_id, status=FAILED)

            if baseline is None:
                logger.debug(f"No historical price available for market {market_id} yet")
                return MarketResult(market_id=market_id, status=NO_BASELINE)

            previous_price = baseline.price
            current_price = quote.price
            change_pct = percent_change(previous_price, current_price)
            result = MarketResult(market_id=market_id, status=PROCESSED, change_pct=change_pct)

            logger.debug(
                f"Market {market_id} (token {tracking.token_id}): current={current_price:.4f}, "
                f"previous={previous_price:.4f}, change={change_pct:.2f}%"
            )

            for subscription in unit.subscriptions:
                if not subscription.active or subscription.market_id != market_id:
                    continue

                _, triggered = detect(previous_price, current_price, subscription.threshold_pct)
                if not triggered:
                    continue

                result.triggered += 1
                logger.info(
                    f"Alert triggered for market {market_id}: {change_pct:.2f}% change "
                    f"(threshold: {subscription.threshold_pct:.1f}%)"
                )

                try:
                    await self.dispatcher.dispatch(
                        db,
                        subscription,
                        tracking.market_title,
                        previous_price,
                        current_price,
                        change_pct
                    )
                    result.delivered += 1
                except OwnerNotFound as e:
                    logger.warning(f"Skipping orphaned subscription {subscription.id}: {e}")
                except DispatchError as e:
                    logger.error(f"Failed to send price alert for subscription {subscription.id}: {e}")
                except SQLAlchemyError as e:
                    await db.rollback()
                    logger.error(f"Failed to record alert for subscription {subscription.id}: {e}")

            return result
