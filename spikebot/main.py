"""Monitor process entry point."""
import asyncio
import logging
import signal
from spikebot.core.config import settings
from spikebot.core.database import connect_with_retry, init_db, close_db, mask_db_url
from spikebot.bot.messenger import TelegramMessenger
from spikebot.bot.sessions import ConversationSessions
from spikebot.providers.opinion import OpinionProvider
from spikebot.scheduler.main import MonitorScheduler
from spikebot.workers import AlertDispatcher, MarketMonitor

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def run():
    """Connect the store, wire the monitor together and run until signalled."""
    logger.info("Starting Opinion spike alert monitor...")

    # Unreachable database at startup is fatal after a bounded retry
    await connect_with_retry(
        init_db,
        attempts=settings.db_connect_attempts,
        initial_delay=settings.db_connect_initial_delay,
        description=f"database {mask_db_url(settings.database_url)}"
    )

    provider = OpinionProvider()
    messenger = TelegramMessenger()
    dispatcher = AlertDispatcher(messenger)
    monitor = MarketMonitor(provider, dispatcher)
    # The chat interface, when attached, shares this map
    sessions = ConversationSessions()
    scheduler = MonitorScheduler(monitor, sessions=sessions)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            # Signal handlers are unavailable on some platforms
            pass

    try:
        await scheduler.run()
    finally:
        await provider.close()
        await messenger.close()
        await close_db()
        logger.info("Opinion spike alert monitor stopped.")


def main():
    """Console entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
