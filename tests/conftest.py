"""Shared pytest fixtures for spike monitor tests."""
import os

# Settings are read at import time; required values must exist first
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-token")
os.environ.setdefault("OPINION_API_KEY", "test-api-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from unittest.mock import AsyncMock, MagicMock
from typing import Optional

from spikebot.models import Subscription, User
from spikebot.providers.models import BINARY, LatestPrice, TrackingToken
from spikebot.models.price_sample import PriceSide


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    return AsyncMock()


def create_subscription(
    id: int = 1,
    user_id: int = 1,
    market_id: str = "101",
    threshold_pct: float = 20.0,
    token_id: Optional[str] = None,
    active: bool = True
) -> Subscription:
    """Factory function to create detached Subscription instances for testing."""
    return Subscription(
        id=id,
        user_id=user_id,
        market_id=market_id,
        market_name=f"Market #{market_id}",
        token_id=token_id,
        threshold_pct=threshold_pct,
        active=active
    )


def create_user(id: int = 1, telegram_id: int = 555000111, username: str = "trader") -> User:
    """Factory function to create detached User instances for testing."""
    return User(id=id, telegram_id=telegram_id, username=username)


def create_tracking_token(market_id: str = "101", token_id: str = "tok-yes-101", title: str = "Will it rain?") -> TrackingToken:
    return TrackingToken(token_id=token_id, market_id=market_id, market_title=title, outcome_kind=BINARY)


def create_latest_price(token_id: str = "tok-yes-101", price: float = 0.5) -> LatestPrice:
    return LatestPrice(token_id=token_id, price=price, side=PriceSide.BUY, size=10.0)


@pytest.fixture
def mock_messenger():
    """Messenger whose deliveries always succeed."""
    messenger = MagicMock()
    messenger.deliver = AsyncMock(return_value=None)
    return messenger
