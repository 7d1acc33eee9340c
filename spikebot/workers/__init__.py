"""Workers package initialization."""
from spikebot.workers.alert_dispatcher import AlertDispatcher
from spikebot.workers.market_monitor import MarketMonitor

__all__ = ["AlertDispatcher", "MarketMonitor"]
