"""Unit tests for TelegramMessenger."""
import pytest
from unittest.mock import AsyncMock, MagicMock
from telegram.constants import ParseMode
from telegram.error import Forbidden, NetworkError

from spikebot.bot.messenger import TelegramMessenger, DeliveryError


@pytest.fixture
def mock_bot():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    bot.shutdown = AsyncMock()
    return bot


@pytest.mark.unit
@pytest.mark.asyncio
class TestTelegramMessenger:
    """Test TelegramMessenger."""

    async def test_deliver(self, mock_bot):
        """✅ Markdown message sent to chat."""
        messenger = TelegramMessenger(bot=mock_bot)

        await messenger.deliver(777, "*hello*")

        mock_bot.send_message.assert_called_once_with(
            chat_id=777,
            text="*hello*",
            parse_mode=ParseMode.MARKDOWN
        )

    @pytest.mark.parametrize("error", [Forbidden("bot was blocked by the user"), NetworkError("timed out")])
    async def test_failure_wrapped(self, mock_bot, error):
        """❌ Telegram error → DeliveryError."""
        mock_bot.send_message.side_effect = error
        messenger = TelegramMessenger(bot=mock_bot)

        with pytest.raises(DeliveryError) as exc:
            await messenger.deliver(777, "hi")

        assert exc.value.__cause__ is error

    async def test_close(self, mock_bot):
        """✅ Bot shut down."""
        await TelegramMessenger(bot=mock_bot).close()
        mock_bot.shutdown.assert_called_once()
