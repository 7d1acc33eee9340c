"""Subscription service for managing users' market alerts."""
from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from spikebot.models import Subscription
from spikebot.core.config import settings
import logging

logger = logging.getLogger(__name__)


class MaxMarketsExceeded(ValueError):
    """User already tracks the maximum number of distinct markets."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Cannot track more than {limit} markets")


class SubscriptionService:
    """Service for subscription management."""

    @staticmethod
    async def create_or_update_subscription(
        db: AsyncSession,
        user_id: int,
        market_id: str,
        threshold_pct: float,
        token_id: Optional[str] = None,
        market_name: Optional[str] = None,
        max_markets: Optional[int] = None
    ) -> Subscription:
        """
        Create an alert on a market, or refresh the user's existing one.

        An existing active subscription for the same (user, market) pair is
        updated in place and does not count against the market limit.

        Args:
            db: Database session
            user_id: Owner's user ID
            market_id: Market to watch
            threshold_pct: Trigger magnitude in percent
            token_id: Optional explicit outcome token
            market_name: Optional display name
            max_markets: Distinct active market limit (defaults to settings)

        Returns:
            Subscription object

        Raises:
            MaxMarketsExceeded: If this would be one market too many
            ValueError: If threshold_pct is not positive
        """
        limit = max_markets or settings.max_markets_per_user
        market_id = str(market_id).strip()

        result = await db.execute(
            select(Subscription).where(
                Subscription.user_id == user_id,
                Subscription.market_id == market_id,
                Subscription.active == True
            )
        )
        existing = result.scalar_one_or_none()

        if existing:
            existing.threshold_pct = threshold_pct
            existing.token_id = token_id
            if market_name:
                existing.market_name = market_name
            existing.updated_at = datetime.now(timezone.utc)
            await db.commit()
            await db.refresh(existing)
            logger.info(f"Updated subscription {existing.id}: user_id={user_id}, market_id={market_id}, threshold={threshold_pct:.1f}%")
            return existing

        tracked = await SubscriptionService.get_tracked_market_ids(db, user_id)
        if len(tracked) >= limit:
            raise MaxMarketsExceeded(limit)

        subscription = Subscription(
            user_id=user_id,
            market_id=market_id,
            market_name=market_name or f"Market #{market_id}",
            token_id=token_id,
            threshold_pct=threshold_pct,
            active=True
        )
        db.add(subscription)
        await db.commit()
        await db.refresh(subscription)

        logger.info(f"Created subscription {subscription.id}: user_id={user_id}, market_id={market_id}, threshold={threshold_pct:.1f}%")
        return subscription

    @staticmethod
    async def deactivate_subscription(
        db: AsyncSession,
        subscription_id: int,
        user_id: int
    ) -> bool:
        """
        Soft-delete a user's subscription.

        Args:
            db: Database session
            subscription_id: Subscription ID
            user_id: Owner's user ID (must match)

        Returns:
            True if deactivated, False if not found or already inactive
        """
        result = await db.execute(
            select(Subscription).where(
                Subscription.id == subscription_id,
                Subscription.user_id == user_id,
                Subscription.active == True
            )
        )
        subscription = result.scalar_one_or_none()

        if not subscription:
            return False

        subscription.active = False
        subscription.updated_at = datetime.now(timezone.utc)
        await db.commit()

        logger.info(f"Deactivated subscription {subscription_id} for user {user_id}")
        return True

    @staticmethod
    async def get_subscription(db: AsyncSession, subscription_id: int) -> Optional[Subscription]:
        """Get a subscription by ID."""
        result = await db.execute(
            select(Subscription).where(Subscription.id == subscription_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_subscriptions(
        db: AsyncSession,
        user_id: int,
        active_only: bool = True
    ) -> List[Subscription]:
        """
        Get list of subscriptions for a user, newest first.

        Args:
            db: Database session
            user_id: User ID
            active_only: Only return active subscriptions

        Returns:
            List of Subscription objects
        """
        query = select(Subscription).where(Subscription.user_id == user_id)

        if active_only:
            query = query.where(Subscription.active == True)

        result = await db.execute(query.order_by(Subscription.created_at.desc(), Subscription.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_tracked_market_ids(db: AsyncSession, user_id: int) -> List[str]:
        """Distinct market IDs the user has active subscriptions on."""
        result = await db.execute(
            select(Subscription.market_id)
            .where(
                Subscription.user_id == user_id,
                Subscription.active == True
            )
            .distinct()
            .order_by(Subscription.market_id)
        )
        return [row[0] for row in result.all()]

    @staticmethod
    async def list_active(db: AsyncSession) -> List[Subscription]:
        """All active subscriptions, ordered by market then ID."""
        result = await db.execute(
            select(Subscription)
            .where(Subscription.active == True)
            .order_by(Subscription.market_id, Subscription.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_distinct_active_market_ids(db: AsyncSession) -> List[str]:
        """Every market with at least one active subscription."""
        result = await db.execute(
            select(Subscription.market_id)
            .where(Subscription.active == True)
            .distinct()
            .order_by(Subscription.market_id)
        )
        return [row[0] for row in result.all()]
