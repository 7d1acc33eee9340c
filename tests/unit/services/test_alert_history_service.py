"""Unit tests for AlertHistoryService."""
import pytest
from unittest.mock import MagicMock

from spikebot.services.alert_history_service import AlertHistoryService
from spikebot.models import AlertHistory


@pytest.mark.unit
@pytest.mark.asyncio
class TestAlertHistoryService:
    """Test alert history persistence."""

    async def test_create_history_undelivered(self, mock_db):
        """✅ New row committed with message_delivered=False."""
        history = await AlertHistoryService.create_history(
            mock_db,
            subscription_id=3,
            market_id="101",
            previous_price=0.40,
            current_price=0.52,
            change_pct=30.0
        )

        assert isinstance(history, AlertHistory)
        assert history.message_delivered is False
        assert history.triggered_at is not None
        mock_db.add.assert_called_once_with(history)
        mock_db.commit.assert_called_once()
        mock_db.refresh.assert_called_once_with(history)

    async def test_mark_delivered(self, mock_db):
        """✅ Update executed and committed."""
        await AlertHistoryService.mark_delivered(mock_db, 5)

        mock_db.execute.assert_called_once()
        mock_db.commit.assert_called_once()

    async def test_history_for_subscription(self, mock_db):
        """✅ Rows returned as list."""
        row = MagicMock(spec=AlertHistory)
        mock_result = MagicMock()
        mock_result.scalars.return_value.all.return_value = [row]
        mock_db.execute.return_value = mock_result

        rows = await AlertHistoryService.get_history_for_subscription(mock_db, 3)

        assert rows == [row]
