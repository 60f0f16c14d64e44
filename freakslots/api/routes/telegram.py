"""Telegram webhook receiver."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request, Response
from telegram import Update
from telegram.ext import Application
from freakslots.api.dependencies import get_telegram
from freakslots.core.auth import secret_matches
from freakslots.core.config import settings
from freakslots.core.errors import NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/telegram", tags=["telegram"])


@router.post("/webhook/{secret}")
async def telegram_webhook(
    secret: str,
    request: Request,
    application: Optional[Application] = Depends(get_telegram)
):
    """
    Queue one update for the running bot.

    Handlers run on the application's update fetcher, so a long broadcast
    fan-out never holds the reply. Always answers 200 on the configured path
    so Telegram never retries.
    """
    if application is None or not secret_matches(secret, settings.telegram_webhook_secret):
        raise NotFoundError("Not Found")

    try:
        data = await request.json()
        logger.debug(f"Telegram update received: {data}")
        update = Update.de_json(data, application.bot)
        await application.update_queue.put(update)
    except Exception as e:
        logger.error(f"Queueing Telegram update failed: {e}", exc_info=True)

    return Response(status_code=200)
