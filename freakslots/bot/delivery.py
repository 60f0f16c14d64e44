"""Send broadcast payloads through the Telegram Bot API."""
import logging
from typing import Dict, Iterable, Tuple
from telegram import Bot
from telegram.error import TelegramError
from freakslots.bot.broadcast import BroadcastPayload, MediaKind
from freakslots.core.errors import DeliveryError

logger = logging.getLogger(__name__)


# kind -> (Bot method, content keyword, accepts caption)
SEND_METHODS: Dict[MediaKind, Tuple[str, str, bool]] = {
    MediaKind.TEXT: ("send_message", "text", False),
    MediaKind.PHOTO: ("send_photo", "photo", True),
    MediaKind.VIDEO: ("send_video", "video", True),
    MediaKind.VIDEO_NOTE: ("send_video_note", "video_note", False),
    MediaKind.DOCUMENT: ("send_document", "document", True),
    MediaKind.AUDIO: ("send_audio", "audio", True),
}


async def send_payload(bot: Bot, chat_id: int, payload: BroadcastPayload):
    """
    Resend a captured payload to one chat using the matching Bot method.

    Raises:
        DeliveryError: If Telegram rejects the send
    """
    method_name, content_kw, accepts_caption = SEND_METHODS[payload.kind]
    kwargs = {"chat_id": chat_id, content_kw: payload.content}
    if accepts_caption:
        kwargs["caption"] = payload.caption or ""

    try:
        await getattr(bot, method_name)(**kwargs)
    except TelegramError as e:
        raise DeliveryError(chat_id, str(e)) from e


async def fan_out(bot: Bot, chat_ids: Iterable[int], payload: BroadcastPayload) -> int:
    """Deliver to every chat, skipping failures; returns the success count."""
    sent = 0
    for chat_id in chat_ids:
        try:
            await send_payload(bot, chat_id, payload)
            sent += 1
        except DeliveryError as e:
            logger.warning(str(e))
    logger.info(f"Broadcast delivered to {sent} chats ({payload.kind.value})")
    return sent
