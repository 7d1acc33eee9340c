"""Monitoring scheduler: the fixed-interval monitoring job plus conversation session pruning."""
import logging
import asyncio
from datetime import datetime, timezone
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from spikebot.bot.sessions import ConversationSessions
from spikebot.core.config import settings
from spikebot.workers.market_monitor import MarketMonitor

logger = logging.getLogger(__name__)


class MonitorScheduler:
    """Scheduler that runs monitoring cycles on a fixed timer."""

    JOB_ID = "monitoring_cycle"
    PRUNE_JOB_ID = "session_prune"
    PRUNE_INTERVAL_SECONDS = 60

    def __init__(
        self,
        monitor: MarketMonitor,
        interval_seconds: Optional[int] = None,
        sessions: Optional[ConversationSessions] = None
    ):
        logger.debug("Creating AsyncIOScheduler instance")
        self.monitor = monitor
        self.sessions = sessions
        self.interval_seconds = interval_seconds or settings.poll_interval_seconds
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._stopped = asyncio.Event()

    async def run_monitoring_cycle(self):
        """Scheduled job body; errors are logged so the job keeps firing."""
        try:
            await self.monitor.run_cycle()
        except Exception as e:
            logger.error(f"Monitoring cycle failed: {e}", exc_info=True)

    async def prune_sessions(self):
        """Drop expired conversation sessions."""
        await self.sessions.prune()

    def start(self):
        """Register the interval job and start the scheduler."""
        logger.info("="*60)
        logger.info("Starting market monitor...")
        logger.info(f"Log level: {settings.log_level}")
        logger.info(f"Poll interval: every {self.interval_seconds} seconds")
        logger.info(f"Baseline: {settings.lookback_seconds}s ago (±{settings.lookback_tolerance_seconds}s)")
        logger.info(f"Price retention: {settings.price_retention_minutes} minutes")
        logger.info("="*60)

        # First cycle fires immediately; an in-flight cycle makes later firings skip
        self.scheduler.add_job(
            self.run_monitoring_cycle,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        if self.sessions is not None:
            self.scheduler.add_job(
                self.prune_sessions,
                trigger=IntervalTrigger(seconds=self.PRUNE_INTERVAL_SECONDS),
                id=self.PRUNE_JOB_ID,
                max_instances=1,
                coalesce=True,
                replace_existing=True
            )

        self.scheduler.start()
        logger.info("Scheduler started successfully")

    def stop(self):
        """Stop the monitor and the scheduler; safe to call more than once."""
        if self._stopped.is_set():
            return
        logger.info("Shutting down scheduler...")
        self.monitor.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._stopped.set()

    async def run(self):
        """Run until ``stop`` is called or the task is cancelled."""
        self.start()

        try:
            await self._stopped.wait()
        except asyncio.CancelledError:
            logger.info("Scheduler task cancelled")
            raise
        finally:
            self.stop()
            # Gateway calls honour their own timeout, so the wait is bounded by it
            try:
                await asyncio.wait_for(self.monitor.wait_idle(), timeout=settings.api_timeout_seconds * 2)
            except asyncio.TimeoutError:
                logger.warning("Monitoring cycle did not finish before shutdown")
