"""Alert dispatcher: records triggered alerts and notifies their owners."""
import logging
from typing import Optional, Protocol
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from spikebot.bot.messenger import DeliveryError
from spikebot.core.config import settings
from spikebot.models import AlertHistory, Subscription
from spikebot.services import AlertHistoryService, UserService
from spikebot.utils.formatting import format_alert_notification

logger = logging.getLogger(__name__)


class Messenger(Protocol):
    """Anything that can deliver a text message to a chat."""

    async def deliver(self, chat_id: int, text: str) -> None:
        ...


class DispatchError(Exception):
    """Base class for dispatch failures."""
    pass


class OwnerNotFound(DispatchError):
    """Subscription's owner no longer exists."""
    pass


class DeliveryFailed(DispatchError):
    """Message could not be delivered; the history row stays undelivered."""

    def __init__(self, message: str, history: AlertHistory):
        super().__init__(message)
        self.history = history


class AlertDispatcher:
    """Turns a triggered subscription into a history row and a Telegram message."""

    def __init__(
        self,
        messenger: Messenger,
        lookback_seconds: Optional[int] = None,
        timezone_str: Optional[str] = None
    ):
        self.messenger = messenger
        self.lookback_seconds = lookback_seconds or settings.lookback_seconds
        self.timezone_str = timezone_str or settings.display_timezone

    async def dispatch(
        self,
        db: AsyncSession,
        subscription: Subscription,
        market_title: str,
        previous_price: float,
        current_price: float,
        change_pct: float
    ) -> AlertHistory:
        """
        Record and deliver one alert.

        The history row is committed before delivery is attempted, so a
        failed send leaves an undelivered row behind rather than nothing.

        Args:
            db: Database session
            subscription: Subscription whose threshold was met
            market_title: Market display title
            previous_price: Baseline price
            current_price: Latest price
            change_pct: Signed percentage change

        Returns:
            The AlertHistory row (expired if the delivered flag could not be written)

        Raises:
            OwnerNotFound: If the owner is gone (no history row is written)
            DeliveryFailed: If the message could not be sent
        """
        owner = await UserService.get_user_by_id(db, subscription.user_id)
        if owner is None:
            raise OwnerNotFound(
                f"User {subscription.user_id} for subscription {subscription.id} not found"
            )

        history = await AlertHistoryService.create_history(
            db,
            subscription_id=subscription.id,
            market_id=subscription.market_id,
            previous_price=previous_price,
            current_price=current_price,
            change_pct=change_pct
        )

        message = format_alert_notification(
            market_title=market_title,
            market_id=subscription.market_id,
            previous_price=previous_price,
            current_price=current_price,
            change_pct=change_pct,
            threshold_pct=subscription.threshold_pct,
            lookback_seconds=self.lookback_seconds,
            triggered_at=history.triggered_at,
            timezone_str=self.timezone_str
        )

        # A rollback expires every loaded instance; only plain values are read after it
        history_id = history.id
        chat_id = owner.telegram_id
        market_id = subscription.market_id

        try:
            await self.messenger.deliver(chat_id, message)
        except DeliveryError as e:
            logger.error(f"Failed to send notification to user {chat_id}: {e}")
            raise DeliveryFailed(str(e), history) from e

        try:
            await AlertHistoryService.mark_delivered(db, history_id)
            history.message_delivered = True
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(f"Failed to mark message as delivered for history {history_id}: {e}")

        logger.info(
            f"Sent price alert to user {chat_id} for market {market_id} ({change_pct:.2f}%)"
        )
        return history
