"""
Base plugin class with shared utilities for the SplitBot plugins.
"""
from telegram import Bot, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes
from typing import Optional
import logging

import config
from plugins import Plugin
from plugins.formatting import private_keyboard, pricing_keyboard
from storage.analytics import log_event
from storage.plans import PlanService

logger = logging.getLogger(__name__)

PREMIUM_REQUIRED_TEXT = (
    "⭐ This needs an active plan. Pick one that fits your trip and come right back."
)

EXPIRY_REMINDER_TEXT = "⏰ Heads up: your plan expires in {hours} hour{plural}. Renew it to keep splitting."

PRIVATE_MENU_TEXT = "👋 Here you can list transactions, add splits and payments, or manage your plan."

# Reminders are sent when a plan has at most this many hours left.
EXPIRY_REMINDER_HOURS = 24


class BasePlugin(Plugin):
    """Plugin with reply, analytics and plan gating helpers."""

    def __init__(self, plans: Optional[PlanService] = None):
        self.plans = plans

    async def safe_reply(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
        text: str,
        parse_mode: Optional[str] = None,
        reply_markup=None,
    ):
        """
        Reply to the triggering message, or post to the chat when there is none
        (callback queries).

        Returns:
            The sent message or None if unable to send
        """
        if update.message:
            return await update.message.reply_text(text, parse_mode=parse_mode, reply_markup=reply_markup)
        elif update.effective_chat:
            return await context.bot.send_message(
                chat_id=update.effective_chat.id,
                text=text,
                parse_mode=parse_mode,
                reply_markup=reply_markup,
            )
        else:
            logger.warning("No message or chat found in update for plugin.")
            return None

    def log_analytics(self, update: Update, event_type: str, extra: Optional[str] = None) -> None:
        user = update.effective_user
        chat = update.effective_chat

        if user is not None and chat is not None:
            log_event(
                user_id=user.id,
                chat_id=chat.id,
                event_type=event_type,
                username=getattr(user, "username", None),
                extra=extra,
            )

    async def ensure_plan(self, update: Update, context: ContextTypes.DEFAULT_TYPE, feature: str) -> bool:
        """Return True if the user may use ``feature``, otherwise tell them how to get a plan."""
        user = update.effective_user
        if user is None:
            return False
        if self.plans is None or self.plans.check_premium_access(user.id, feature):
            return True

        logger.info(f"User {user.id} blocked from {feature}: no active plan")
        await self.safe_reply(
            update,
            context,
            PREMIUM_REQUIRED_TEXT,
            reply_markup=pricing_keyboard(config.PRICING_URL, user.id),
        )
        if update.callback_query:
            await update.callback_query.answer()
        return False

    async def remind_expiry(self, bot: Bot, user_id: int) -> None:
        if self.plans is None:
            return
        hours = self.plans.hours_until_expiry(user_id)
        if hours is None or hours <= 0 or hours > EXPIRY_REMINDER_HOURS:
            return
        try:
            await bot.send_message(
                chat_id=user_id,
                text=EXPIRY_REMINDER_TEXT.format(hours=hours, plural="" if hours == 1 else "s"),
                reply_markup=pricing_keyboard(config.PRICING_URL, user_id, "🔄 Renew plan"),
            )
        except TelegramError as e:
            logger.warning(f"Could not send expiry reminder to {user_id}: {e}")

    async def send_private_menu(self, bot: Bot, user_id: int) -> bool:
        """DM the web app menu. Fails when the user has never started a private chat."""
        try:
            await bot.send_message(
                chat_id=user_id,
                text=PRIVATE_MENU_TEXT,
                reply_markup=private_keyboard(config.APP_HOST),
            )
            return True
        except TelegramError as e:
            logger.warning(f"Could not open private chat with {user_id}: {e}")
            return False
