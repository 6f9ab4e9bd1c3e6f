"""Group registration plugin: /start, /setup, /app and the join buttons."""
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes
import logging

from plugins.base import BasePlugin
from plugins.formatting import add_user_keyboard, md, open_private_keyboard, render_members
from plugins.help import HELP_TEXT
from storage import groups

logger = logging.getLogger(__name__)

GROUP_REGISTERED_TEXT = "👥 *Who's in?*\n\n{members}\n\n" + md("Tap the button to join this group's split.")
JOINED_TEXT = "✅ You joined the split in {title}\\. Use the buttons below to add expenses\\."
OPEN_PRIVATE_TEXT = "💬 I couldn't message you yet. Open a private chat with me, press Start, then try again."


class GroupPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "group"

    @property
    def commands(self):
        return [
            ("setup", "Register this group"),
            ("app", "Open the web app"),
        ]

    @property
    def private_commands(self):
        return [("start", "Open the menu")]

    def register(self, app: Application) -> None:
        app.add_handler(CommandHandler(["start", "setup", "app"], self.start))
        app.add_handler(CallbackQueryHandler(self.add_user, pattern="^adduser$"))
        app.add_handler(CallbackQueryHandler(self.open_bot, pattern="^openbot$"))

    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        user = update.effective_user
        if not chat or not user or chat.type == "channel":
            return

        if chat.type == "private":
            await self.safe_reply(update, context, HELP_TEXT, parse_mode="MarkdownV2")
            await self.send_private_menu(context.bot, user.id)
            self.log_analytics(update, "private_start")
            return

        groups.register_group(chat.id, chat.title, chat.type)
        members = groups.group_members(chat.id)
        await self.safe_reply(
            update,
            context,
            GROUP_REGISTERED_TEXT.format(members=render_members(members)),
            parse_mode="MarkdownV2",
            reply_markup=add_user_keyboard(),
        )
        self.log_analytics(update, "group_setup")
        logger.info(f"Group {chat.id} set up with {len(members)} members")

    async def add_user(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if not query or not query.message:
            return
        user = query.from_user
        chat = query.message.chat

        if not await self.ensure_plan(update, context, "travelers"):
            return

        added = groups.register_user_in_group(
            telegram_id=user.id,
            chat_id=chat.id,
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
            language_code=user.language_code,
        )
        if not added:
            await query.answer("You're already in this split.")
            return

        if self.plans is not None:
            await self.plans.usage.increment(user.id, travelers=1)
        self.log_analytics(update, "user_joined")

        try:
            await context.bot.send_message(
                chat_id=user.id,
                text=JOINED_TEXT.format(title=md(chat.title or "the group")),
                parse_mode="MarkdownV2",
                reply_markup=open_private_keyboard(),
            )
        except TelegramError as e:
            logger.warning(f"Could not DM user {user.id} after joining {chat.id}: {e}")

        members = groups.group_members(chat.id)
        try:
            await query.edit_message_text(
                GROUP_REGISTERED_TEXT.format(members=render_members(members)),
                parse_mode="MarkdownV2",
                reply_markup=add_user_keyboard(),
            )
        except TelegramError as e:
            logger.warning(f"Failed to edit member list in {chat.id}: {e}")

        await query.answer(f"Welcome aboard, {user.first_name}!")
        await self.remind_expiry(context.bot, user.id)
        logger.info(f"User {user.id} joined group {chat.id}")

    async def open_bot(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if not query:
            return
        if not await self.ensure_plan(update, context, "trip"):
            return

        if await self.send_private_menu(context.bot, query.from_user.id):
            await query.answer()
        else:
            await query.answer(OPEN_PRIVATE_TEXT, show_alert=True)
