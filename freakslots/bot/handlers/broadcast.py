"""Admin broadcast handlers: /broadcast, draft capture and approve/decline."""
import logging
from typing import List
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes
from freakslots.bot.broadcast import (
    APPROVE_DATA,
    APPROVE_LABEL,
    DECLINE_DATA,
    DECLINE_LABEL,
    COMPLETED_TEMPLATE,
    USERS_LOAD_FAILED_TEXT,
    AskConfirmation,
    BroadcastCommand,
    BroadcastStateMachine,
    CallbackChoice,
    EchoDraft,
    Effect,
    InboundMessage,
    Reply,
    StartFanOut,
    extract_payload,
)
from freakslots.bot.delivery import fan_out, send_payload
from freakslots.core.errors import DeliveryError, StorageError

logger = logging.getLogger(__name__)


def confirm_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(APPROVE_LABEL, callback_data=APPROVE_DATA)],
        [InlineKeyboardButton(DECLINE_LABEL, callback_data=DECLINE_DATA)],
    ])


def _is_admin(context: ContextTypes.DEFAULT_TYPE, user_id) -> bool:
    return user_id is not None and user_id in context.bot_data.get("admin_ids", ())


def _machine(context: ContextTypes.DEFAULT_TYPE) -> BroadcastStateMachine:
    return context.bot_data["broadcast"]


async def apply_effects(context: ContextTypes.DEFAULT_TYPE, chat_id: int, effects: List[Effect]):
    """Execute state machine effects against Telegram and storage."""
    bot = context.bot
    for effect in effects:
        if isinstance(effect, Reply):
            await bot.send_message(chat_id=chat_id, text=effect.text)
        elif isinstance(effect, EchoDraft):
            await send_payload(bot, chat_id, effect.payload)
        elif isinstance(effect, AskConfirmation):
            await bot.send_message(chat_id=chat_id, text=effect.text, reply_markup=confirm_keyboard())
        elif isinstance(effect, StartFanOut):
            await _fan_out(context, chat_id, effect)


async def _fan_out(context: ContextTypes.DEFAULT_TYPE, chat_id: int, effect: StartFanOut):
    try:
        user_ids = await context.bot_data["storage"].list_user_ids()
    except StorageError as e:
        logger.error(f"Loading broadcast recipients failed: {e}", exc_info=True)
        await context.bot.send_message(chat_id=chat_id, text=USERS_LOAD_FAILED_TEXT)
        return

    logger.info(f"Admin {chat_id} approved broadcast to {len(user_ids)} users")
    sent = await fan_out(context.bot, user_ids, effect.payload)
    await context.bot.send_message(chat_id=chat_id, text=COMPLETED_TEMPLATE.format(sent=sent))


async def broadcast_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /broadcast command (admins only)."""
    chat_id = update.effective_chat.id
    user = update.effective_user
    event = BroadcastCommand(from_admin=_is_admin(context, user.id if user else None))

    if not event.from_admin:
        logger.warning(f"Rejected /broadcast from non-admin chat {chat_id}")

    await apply_effects(context, chat_id, _machine(context).handle(chat_id, event))


async def broadcast_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Capture an admin's next message as the broadcast draft."""
    message = update.effective_message
    user = update.effective_user
    if message is None or not _is_admin(context, user.id if user else None):
        return

    chat_id = update.effective_chat.id
    machine = _machine(context)
    event = InboundMessage(
        from_admin=True,
        payload=extract_payload(message),
        is_command=bool(message.text and message.text.startswith("/"))
    )

    try:
        await apply_effects(context, chat_id, machine.handle(chat_id, event))
    except (DeliveryError, TelegramError) as e:
        logger.error(f"Broadcast confirmation failed for {chat_id}: {e}", exc_info=True)
        machine.reset(chat_id)


async def broadcast_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle the approve/decline buttons."""
    query = update.callback_query
    await query.answer()

    if query.message is None:
        return

    chat_id = query.message.chat.id
    event = CallbackChoice(
        from_admin=_is_admin(context, query.from_user.id if query.from_user else None),
        data=query.data or ""
    )
    await apply_effects(context, chat_id, _machine(context).handle(chat_id, event))
