"""Telegram delivery channel for alert notifications."""
import logging
from typing import Optional
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError
from spikebot.core.config import settings

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when the messaging channel rejects or fails a send."""
    pass


class TelegramMessenger:
    """Sends formatted messages to a Telegram chat."""
    
    def __init__(self, bot: Optional[Bot] = None):
        self.bot = bot or Bot(token=settings.telegram_bot_token)
    
    async def deliver(self, chat_id: int, text: str) -> None:
        """
        Send a Markdown message and wait for Telegram to accept it.
        
        Raises:
            DeliveryError: If Telegram rejects the message or is unreachable
        """
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN
            )
        except TelegramError as e:
            raise DeliveryError(f"Telegram send to chat {chat_id} failed: {e}") from e
        
        logger.debug(f"Sent alert notification to chat {chat_id}")
    
    async def close(self):
        """Shut down the bot's HTTP session."""
        await self.bot.shutdown()
