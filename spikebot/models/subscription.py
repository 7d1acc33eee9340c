"""Subscription model linking users to market price alerts."""
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship, validates
from datetime import datetime, timezone
from spikebot.core.database import Base


class Subscription(Base):
    """A user's price-spike alert on one market."""
    
    __tablename__ = "subscriptions"
    __table_args__ = (
        # At most one active subscription per (user, market); inactive rows are kept for history
        Index(
            "uq_subscriptions_user_market_active",
            "user_id",
            "market_id",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1")
        ),
        Index("ix_subscriptions_user_active", "user_id", "active"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    market_id = Column(String, nullable=False, index=True)
    market_name = Column(String, nullable=True)
    token_id = Column(String, nullable=True)  # explicit outcome token, overrides the default
    threshold_pct = Column(Float, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    
    # Relationships
    user = relationship("User", back_populates="subscriptions")
    history = relationship("AlertHistory", back_populates="subscription", cascade="all, delete-orphan")
    
    @validates('threshold_pct')
    def validate_threshold(self, key, value):
        """Validate threshold is a positive percentage."""
        if value is None or value <= 0:
            raise ValueError(f"threshold_pct must be positive, got {value}")
        return float(value)
    
    @validates('token_id')
    def validate_token_id(self, key, value):
        """Normalize blank token IDs to None."""
        if value is not None and not str(value).strip():
            return None
        return value
