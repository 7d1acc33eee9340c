"""Models package initialization."""
from spikebot.models.user import User
from spikebot.models.subscription import Subscription
from spikebot.models.price_sample import PriceSample, PriceSide
from spikebot.models.alert_history import AlertHistory

__all__ = [
    "User",
    "Subscription",
    "PriceSample",
    "PriceSide",
    "AlertHistory"
]
