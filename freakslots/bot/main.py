"""Telegram bot application factory and polling entry point."""
import logging
import traceback
from typing import Optional, Sequence
from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)
from freakslots.bot.broadcast import APPROVE_DATA, DECLINE_DATA, BroadcastStateMachine
from freakslots.bot.handlers.broadcast import broadcast_callback, broadcast_command, broadcast_message
from freakslots.bot.handlers.start import start_command
from freakslots.core.config import settings
from freakslots.core.errors import ConfigError
from freakslots.storage import StorageGateway

logger = logging.getLogger(__name__)

WEBHOOK_PATH_TEMPLATE = "/telegram/webhook/{secret}"


def webhook_path(secret: str) -> str:
    return WEBHOOK_PATH_TEMPLATE.format(secret=secret)


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors globally for the Telegram bot.

    Logs the error with its traceback and whatever update context exists.
    """
    logger.error("Exception while handling an update:")

    tb_list = traceback.format_exception(None, context.error, context.error.__traceback__)
    tb_string = "".join(tb_list)

    logger.error(f"Exception: {context.error}")
    logger.error(f"Traceback:\n{tb_string}")

    if update and isinstance(update, Update):
        logger.error(f"Update ID: {update.update_id}")
        if update.effective_user:
            logger.error(f"User: {update.effective_user.id} (@{update.effective_user.username})")
        if update.effective_chat:
            logger.error(f"Chat: {update.effective_chat.id}")


def build_application(
    storage: StorageGateway,
    token: Optional[str] = None,
    admin_ids: Optional[Sequence[int]] = None,
    webapp_url: Optional[str] = None,
    welcome_image_url: Optional[str] = None,
    with_updater: bool = True
) -> Application:
    """
    Build the bot with every handler registered.

    Collaborators live in ``bot_data`` so handlers never reach for globals.
    Pass ``with_updater=False`` for webhook mode, where updates are fed in
    by the API process.

    Raises:
        ConfigError: If the token or web-app URL is missing
    """
    token = token or settings.telegram_bot_token
    webapp_url = webapp_url or settings.tg_webapp_url
    if not token:
        raise ConfigError("Missing env: TELEGRAM_BOT_TOKEN")
    if not webapp_url:
        raise ConfigError("Missing env: TG_WEBAPP_URL")

    builder = Application.builder().token(token)
    if not with_updater:
        builder = builder.updater(None)
    application = builder.build()

    application.bot_data.update({
        "storage": storage,
        "broadcast": BroadcastStateMachine(),
        "admin_ids": set(admin_ids if admin_ids is not None else settings.admin_ids),
        "webapp_url": webapp_url,
        "welcome_image_url": welcome_image_url or settings.tg_welcome_image_url,
    })

    application.add_error_handler(error_handler)

    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("broadcast", broadcast_command))
    application.add_handler(
        CallbackQueryHandler(broadcast_callback, pattern=f"^({APPROVE_DATA}|{DECLINE_DATA})$")
    )
    application.add_handler(MessageHandler(filters.ALL & ~filters.COMMAND, broadcast_message))

    logger.info(f"Bot handlers registered ({len(application.bot_data['admin_ids'])} admins)")
    return application


def main():
    """Start the Telegram bot in polling mode."""
    from freakslots.core.database import create_engine, init_db
    from freakslots.storage.sql import SqlStorageGateway

    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, settings.log_level)
    )

    logger.info("=" * 60)
    logger.info("Starting Telegram bot...")
    logger.info(f"Log level: {settings.log_level}")
    logger.debug(f"Bot token configured: {bool(settings.telegram_bot_token)}")
    logger.info("=" * 60)

    engine = create_engine()
    storage = SqlStorageGateway(engine)
    application = build_application(storage)

    async def post_init(app: Application):
        await init_db(engine)

    async def post_shutdown(app: Application):
        await storage.close()

    application.post_init = post_init
    application.post_shutdown = post_shutdown

    logger.info("Bot started successfully - polling for updates")
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
