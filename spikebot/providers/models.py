"""Data models for prediction-market metadata and prices."""
from dataclasses import dataclass, field
from typing import List, Optional
from spikebot.models.price_sample import PriceSide


BINARY = "binary"
MULTI_OUTCOME = "multi_outcome"


@dataclass
class ChildMarket:
    """One outcome of a multi-outcome (categorical) market."""
    market_id: str
    title: str
    yes_token_id: Optional[str]
    no_token_id: Optional[str]
    status: Optional[str] = None


@dataclass
class MarketDetail:
    """Market metadata as returned by the provider."""
    market_id: str
    title: str
    status: str
    market_type: int  # 0 = binary, anything else = multi-outcome
    yes_token_id: Optional[str] = None
    no_token_id: Optional[str] = None
    resolved_at: int = 0
    volume: float = 0.0
    child_markets: List[ChildMarket] = field(default_factory=list)
    
    @property
    def outcome_kind(self) -> str:
        """Binary markets expose a YES token directly; the rest go through child outcomes."""
        if self.market_type == 0 and self.yes_token_id:
            return BINARY
        return MULTI_OUTCOME


@dataclass
class TrackingToken:
    """Token selected to represent a market's price."""
    token_id: str
    market_id: str
    market_title: str
    outcome_kind: str


@dataclass
class LatestPrice:
    """Latest trade for a token, already parsed."""
    token_id: str
    price: float
    side: PriceSide
    size: float
