"""Alert history persistence."""
from typing import List
from datetime import datetime, timezone
from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession
from spikebot.models import AlertHistory
import logging

logger = logging.getLogger(__name__)


class AlertHistoryService:
    """Service for the triggered-alert audit trail."""
    
    @staticmethod
    async def create_history(
        db: AsyncSession,
        subscription_id: int,
        market_id: str,
        previous_price: float,
        current_price: float,
        change_pct: float
    ) -> AlertHistory:
        """
        Record a triggered alert, undelivered, and commit it immediately.
        
        Args:
            db: Database session
            subscription_id: Subscription that fired
            market_id: Market ID
            previous_price: Baseline price
            current_price: Latest price
            change_pct: Percentage change between the two
            
        Returns:
            AlertHistory object
        """
        history = AlertHistory(
            subscription_id=subscription_id,
            market_id=market_id,
            triggered_at=datetime.now(timezone.utc),
            previous_price=previous_price,
            current_price=current_price,
            change_pct=change_pct,
            message_delivered=False
        )
        db.add(history)
        await db.commit()
        await db.refresh(history)
        
        logger.debug(f"Created alert history: subscription_id={subscription_id}, market={market_id}, change={change_pct:.2f}%")
        return history
    
    @staticmethod
    async def mark_delivered(db: AsyncSession, history_id: int) -> None:
        """Flag a history row as delivered."""
        await db.execute(
            update(AlertHistory)
            .where(AlertHistory.id == history_id)
            .values(message_delivered=True)
        )
        await db.commit()
    
    @staticmethod
    async def get_history_for_subscription(
        db: AsyncSession,
        subscription_id: int,
        limit: int = 20
    ) -> List[AlertHistory]:
        """Recent history rows for one subscription, newest first."""
        result = await db.execute(
            select(AlertHistory)
            .where(AlertHistory.subscription_id == subscription_id)
            .order_by(desc(AlertHistory.triggered_at), desc(AlertHistory.id))
            .limit(limit)
        )
        return list(result.scalars().all())
