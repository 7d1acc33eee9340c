"""Services package initialization."""
from spikebot.services.user_service import UserService
from spikebot.services.subscription_service import SubscriptionService, MaxMarketsExceeded
from spikebot.services.price_service import PriceService
from spikebot.services.alert_history_service import AlertHistoryService
from spikebot.services.spike_detector import detect

__all__ = [
    "UserService",
    "SubscriptionService",
    "MaxMarketsExceeded",
    "PriceService",
    "AlertHistoryService",
    "detect"
]
