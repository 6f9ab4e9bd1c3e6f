"""Debts plugin: /split and the "Show debts" button."""
import asyncio
import logging
from typing import List

from telegram import Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

import config
from core.settlement import MemberDebts, debts_by_member, simplify
from plugins.base import BasePlugin
from plugins.formatting import md, open_private_keyboard, render_debts
from storage import groups

logger = logging.getLogger(__name__)

SETTLED_TEXT = md("🎉 Everyone is settled up. Nobody owes anybody anything.")


def load_debts(chat_id: int) -> List[MemberDebts]:
    """Recompute the group's simplified debts from everything stored for it."""
    members = groups.group_members(chat_id)
    splits = groups.get_splits(chat_id)
    payments = groups.get_payments(chat_id)
    edges = simplify(members, splits, payments)
    logger.info(f"Simplified {len(splits)} splits and {len(payments)} payments in {chat_id} to {len(edges)} transfers")
    return debts_by_member(members, edges)


class DebtsPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "debts"

    @property
    def commands(self):
        return [("split", "Show who owes whom")]

    def register(self, app: Application) -> None:
        app.add_handler(CommandHandler("split", self.split_command))
        app.add_handler(CallbackQueryHandler(self.split_callback, pattern="^split$"))

    async def split_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.effective_chat or not update.effective_user:
            return
        if not await self.ensure_plan(update, context, "trip"):
            return
        await self.send_debts(update, context, update.effective_chat.id)

    async def split_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if not query or not query.message:
            return
        if not await self.ensure_plan(update, context, "trip"):
            return
        await self.send_debts(update, context, query.message.chat.id)
        await query.answer()

    async def send_debts(self, update: Update, context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> None:
        loop = asyncio.get_running_loop()
        entries = await loop.run_in_executor(None, load_debts, chat_id)

        text = render_debts(entries, config.CURRENCY) if entries else SETTLED_TEXT
        await context.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode="MarkdownV2",
            reply_markup=open_private_keyboard(),
        )
        self.log_analytics(update, "debts_shown")
