"""Abstract interface and errors for market data providers."""
from abc import ABC, abstractmethod
from typing import Optional
from spikebot.providers.models import LatestPrice, TrackingToken


class ProviderError(Exception):
    """Exception raised when provider API fails."""
    pass


class MarketNotFound(ProviderError):
    """Market metadata is unavailable for the requested ID."""
    pass


class MarketInactive(ProviderError):
    """Market has resolved or is otherwise not tradable."""
    pass


class NoTrackableToken(ProviderError):
    """Neither an explicit token nor a derivable outcome token exists."""
    pass


class PriceUnavailable(ProviderError):
    """Latest price could not be fetched or trusted."""
    pass


class MarketDataProvider(ABC):
    """Abstract base class for prediction-market data providers."""
    
    @abstractmethod
    async def fetch_tracking_token(
        self,
        market_id: str,
        explicit_token_id: Optional[str] = None
    ) -> TrackingToken:
        """
        Resolve the token whose price represents a market.
        
        Args:
            market_id: Market identifier
            explicit_token_id: Token chosen by the subscriber, takes precedence
            
        Returns:
            TrackingToken with token ID and market title
            
        Raises:
            MarketNotFound, MarketInactive, NoTrackableToken, ProviderError
        """
        pass
    
    @abstractmethod
    async def fetch_latest_price(self, token_id: str) -> LatestPrice:
        """
        Fetch the latest traded price for a token.
        
        Raises:
            PriceUnavailable: On transport, decode or price parse failure
        """
        pass
    
    async def close(self):
        """Release provider resources."""
        pass


__all__ = [
    "MarketDataProvider",
    "ProviderError",
    "MarketNotFound",
    "MarketInactive",
    "NoTrackableToken",
    "PriceUnavailable",
    "LatestPrice",
    "TrackingToken",
]
