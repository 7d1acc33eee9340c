"""Token price sample model."""
import enum
from sqlalchemy import Column, Integer, String, Float, DateTime, Index
from sqlalchemy.orm import validates
from datetime import datetime, timezone
from spikebot.core.database import Base


class PriceSide(str, enum.Enum):
    """Side of the trade that produced the latest price."""
    BUY = "buy"
    SELL = "sell"
    UNKNOWN = "unknown"
    
    @classmethod
    def parse(cls, value) -> "PriceSide":
        """Map a provider side string onto the enum, defaulting to UNKNOWN."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class PriceSample(Base):
    """Price of a market's tracking token at one point in time."""
    
    __tablename__ = "price_samples"
    __table_args__ = (
        Index("ix_price_samples_market_recorded", "market_id", "recorded_at"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(String, nullable=False)
    market_id = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    side = Column(String(20), default=PriceSide.UNKNOWN.value, nullable=False)
    size = Column(Float, default=0.0, nullable=False)
    recorded_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    
    @validates('price')
    def validate_price(self, key, value):
        """A baseline of zero would make the percentage change undefined."""
        if value is None or value <= 0:
            raise ValueError(f"price must be positive, got {value}")
        return value
    
    @validates('size')
    def validate_size(self, key, value):
        if value is None:
            return 0.0
        if value < 0:
            raise ValueError(f"size must be non-negative, got {value}")
        return value
    
    @validates('side')
    def validate_side(self, key, value):
        return PriceSide.parse(value).value
