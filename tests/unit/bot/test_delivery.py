"""Unit tests for broadcast delivery."""
import pytest
from unittest.mock import AsyncMock, MagicMock
from telegram.error import Forbidden

from freakslots.bot.broadcast import BroadcastPayload, MediaKind
from freakslots.bot.delivery import fan_out, send_payload
from freakslots.core.errors import DeliveryError


@pytest.fixture
def mock_bot():
    """Bot whose send methods are AsyncMocks."""
    bot = MagicMock()
    for name in ("send_message", "send_photo", "send_video", "send_video_note", "send_document", "send_audio"):
        setattr(bot, name, AsyncMock())
    return bot


@pytest.mark.unit
@pytest.mark.asyncio
class TestSendPayload:
    """Test send_payload function."""

    async def test_text(self, mock_bot):
        """✅ Text sent as a plain message without caption."""
        await send_payload(mock_bot, 5, BroadcastPayload(MediaKind.TEXT, "Hello"))
        mock_bot.send_message.assert_awaited_once_with(chat_id=5, text="Hello")

    async def test_photo_with_caption(self, mock_bot):
        """✅ Photo resent by file id with its caption."""
        await send_payload(mock_bot, 5, BroadcastPayload(MediaKind.PHOTO, "file-1", "Look"))
        mock_bot.send_photo.assert_awaited_once_with(chat_id=5, photo="file-1", caption="Look")

    async def test_missing_caption_sent_empty(self, mock_bot):
        """✅ Caption-capable kinds get an empty caption when none was given."""
        await send_payload(mock_bot, 5, BroadcastPayload(MediaKind.DOCUMENT, "doc-1"))
        mock_bot.send_document.assert_awaited_once_with(chat_id=5, document="doc-1", caption="")

    async def test_video_note_has_no_caption(self, mock_bot):
        """✅ Video notes never carry a caption."""
        await send_payload(mock_bot, 5, BroadcastPayload(MediaKind.VIDEO_NOTE, "vn-1", "ignored"))
        mock_bot.send_video_note.assert_awaited_once_with(chat_id=5, video_note="vn-1")

    async def test_telegram_error_wrapped(self, mock_bot):
        """❌ Telegram rejection → DeliveryError for that chat."""
        mock_bot.send_message.side_effect = Forbidden("bot was blocked by the user")

        with pytest.raises(DeliveryError) as exc_info:
            await send_payload(mock_bot, 7, BroadcastPayload(MediaKind.TEXT, "Hello"))
        assert exc_info.value.chat_id == 7


@pytest.mark.unit
@pytest.mark.asyncio
class TestFanOut:
    """Test fan_out function."""

    async def test_counts_successes_and_skips_failures(self, mock_bot):
        """✅ Failed recipients skipped, the rest still delivered."""
        async def send(chat_id, text):
            if chat_id == 2:
                raise Forbidden("blocked")

        mock_bot.send_message.side_effect = send

        sent = await fan_out(mock_bot, [1, 2, 3], BroadcastPayload(MediaKind.TEXT, "Hi"))

        assert sent == 2
        assert mock_bot.send_message.await_count == 3

    async def test_no_recipients(self, mock_bot):
        """✅ Empty audience → zero sent."""
        assert await fan_out(mock_bot, [], BroadcastPayload(MediaKind.TEXT, "Hi")) == 0
