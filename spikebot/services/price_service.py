"""Price sample persistence, point-in-time lookup and retention."""
from typing import List, Optional
from datetime import datetime, timedelta, timezone
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from spikebot.models import PriceSample, PriceSide
import logging

logger = logging.getLogger(__name__)


class PriceService:
    """Service for the token price time series."""

    @staticmethod
    async def append_sample(
        db: AsyncSession,
        token_id: str,
        market_id: str,
        price: float,
        side: PriceSide | str = PriceSide.UNKNOWN,
        size: float = 0.0,
        now: Optional[datetime] = None
    ) -> PriceSample:
        """
        Store a price sample. Identical samples are stored twice; there is no dedup.

        Raises:
            ValueError: If price is not positive or size is negative
        """
        sample = PriceSample(
            token_id=token_id,
            market_id=market_id,
            price=price,
            side=side.value if isinstance(side, PriceSide) else side,
            size=size,
            recorded_at=now or datetime.now(timezone.utc)
        )
        db.add(sample)
        await db.commit()
        return sample

    @staticmethod
    async def sample_near(
        db: AsyncSession,
        market_id: str,
        target_age: timedelta,
        tolerance: timedelta = timedelta(seconds=10),
        token_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[PriceSample]:
        """
        Find the sample recorded roughly ``target_age`` ago.

        Only samples whose age lies within ``target_age ± tolerance`` qualify;
        of those the earliest one is returned. No qualifying sample returns
        None, which is the normal state until a market has one full lookback
        of history.

        Args:
            db: Database session
            market_id: Market ID
            target_age: How far back to look
            tolerance: Allowed deviation either side of target_age
            token_id: Restrict to one tracking token
            now: Reference time (defaults to the current time)

        Returns:
            PriceSample or None
        """
        now = now or datetime.now(timezone.utc)
        oldest = now - target_age - tolerance
        newest = now - target_age + tolerance

        query = select(PriceSample).where(
            PriceSample.market_id == market_id,
            PriceSample.recorded_at >= oldest,
            PriceSample.recorded_at <= newest
        )
        if token_id is not None:
            query = query.where(PriceSample.token_id == token_id)

        result = await db.execute(
            query.order_by(PriceSample.recorded_at.asc(), PriceSample.id.asc()).limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_latest_sample(
        db: AsyncSession,
        market_id: str,
        token_id: Optional[str] = None
    ) -> Optional[PriceSample]:
        """Most recent sample for a market."""
        query = select(PriceSample).where(PriceSample.market_id == market_id)
        if token_id is not None:
            query = query.where(PriceSample.token_id == token_id)

        result = await db.execute(
            query.order_by(PriceSample.recorded_at.desc(), PriceSample.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_price_history(
        db: AsyncSession,
        market_id: str,
        since: datetime
    ) -> List[PriceSample]:
        """Samples for a market recorded at or after ``since``, oldest first."""
        result = await db.execute(
            select(PriceSample)
            .where(
                PriceSample.market_id == market_id,
                PriceSample.recorded_at >= since
            )
            .order_by(PriceSample.recorded_at.asc(), PriceSample.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def purge_older_than(
        db: AsyncSession,
        duration: timedelta,
        now: Optional[datetime] = None
    ) -> int:
        """
        Delete samples older than ``duration``.

        Returns:
            Number of deleted rows
        """
        cutoff = (now or datetime.now(timezone.utc)) - duration

        result = await db.execute(
            delete(PriceSample).where(PriceSample.recorded_at < cutoff)
        )
        await db.commit()

        deleted = result.rowcount or 0
        if deleted:
            logger.debug(f"Cleaned up {deleted} old price samples")
        return deleted
