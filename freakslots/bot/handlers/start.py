"""Start command handler."""
import logging
from typing import Optional
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update, WebAppInfo
from telegram.error import TelegramError
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)

FALLBACK_TEXT = "An error occurred. Please try again later."
PLAY_BUTTON_LABEL = "Play Now"


def welcome_caption(username: Optional[str]) -> str:
    """Welcome text shown under the Play Now button."""
    return (
        f"👋 Welcome, {username or 'player'}!\n\n"
        "🎰 Wanna spin without risk?\n"
        "Play free demo slots only inside this bot\n\n"
        "🏆 Top-rated games & working providers always available\n\n"
        "💎 Hidden bonuses & special offers unlocked for players\n\n"
        "🔥 Best slots updated daily, don't miss hot games\n\n"
        "👇 Hit play now & start spinning"
    )


def play_keyboard(webapp_url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(PLAY_BUTTON_LABEL, web_app=WebAppInfo(url=webapp_url))]]
    )


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /start command.
    Registers the chat and sends the welcome with a web-app button.
    """
    chat_id = update.effective_chat.id
    username = update.effective_user.username if update.effective_user else None

    try:
        await context.bot_data["storage"].upsert_user(chat_id, username)
        await send_welcome_message(context, chat_id, username)
    except Exception as e:
        logger.error(f"Error in start_command for chat {chat_id}: {e}", exc_info=True)
        try:
            await context.bot.send_message(chat_id=chat_id, text=FALLBACK_TEXT)
        except TelegramError as send_error:
            logger.error(f"Failed to send fallback message to {chat_id}: {send_error}")


async def send_welcome_message(context: ContextTypes.DEFAULT_TYPE, chat_id: int, username: Optional[str]):
    """Send the welcome message, as a photo when a welcome image is configured."""
    caption = welcome_caption(username)
    reply_markup = play_keyboard(context.bot_data["webapp_url"])
    image_url = context.bot_data.get("welcome_image_url")

    if image_url:
        await context.bot.send_photo(chat_id=chat_id, photo=image_url, caption=caption, reply_markup=reply_markup)
    else:
        await context.bot.send_message(chat_id=chat_id, text=caption, reply_markup=reply_markup)
