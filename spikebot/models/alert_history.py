"""Alert history model: one row per triggered alert."""
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from spikebot.core.database import Base


class AlertHistory(Base):
    """Audit record of a triggered alert and whether its message was delivered."""
    
    __tablename__ = "alert_history"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    market_id = Column(String, nullable=False)
    triggered_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    previous_price = Column(Float, nullable=False)
    current_price = Column(Float, nullable=False)
    change_pct = Column(Float, nullable=False)
    message_delivered = Column(Boolean, default=False, nullable=False)
    
    # Relationships
    subscription = relationship("Subscription", back_populates="history")
