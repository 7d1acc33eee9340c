"""Utilities package initialization."""
from spikebot.utils.time import utcnow, format_timestamp
from spikebot.utils.formatting import (
    escape_markdown,
    format_alert_notification,
    format_alerts_list,
    format_markets_list
)

__all__ = [
    "utcnow",
    "format_timestamp",
    "escape_markdown",
    "format_alert_notification",
    "format_alerts_list",
    "format_markets_list"
]
