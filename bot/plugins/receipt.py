"""Receipt plugin: ask for a receipt photo, scan it, and hand it to the web app."""
import asyncio
import logging
from io import BytesIO

from sqlalchemy.exc import SQLAlchemyError
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes, MessageHandler, filters

import config
from core.ai import ReceiptScanner
from core.receipts import apply_charges, receipt_charges
from plugins.base import BasePlugin, PREMIUM_REQUIRED_TEXT
from plugins.formatting import add_split_url, pricing_keyboard, receipt_keyboard, render_receipt, web_app_keyboard
from storage import groups
from storage.memory import ReceiptSessions
from storage.plans import PlanService

logger = logging.getLogger(__name__)

SEND_RECEIPT_TEXT = "📸 Send me a photo of the receipt."
PROCESSING_TEXT = "⏳ Reading your receipt..."
SCAN_FAILED_TEXT = "😕 I couldn't read that receipt. Try a sharper photo with the whole receipt in frame."
RECEIPT_EXPIRED_TEXT = "This receipt is no longer available. Please scan it again."
SPLIT_RECEIPT_TEXT = "🧾 Assign the items to people and save the split."


class ReceiptPlugin(BasePlugin):
    def __init__(self, plans: PlanService, scanner: ReceiptScanner, sessions: ReceiptSessions):
        super().__init__(plans)
        self.scanner = scanner
        self.sessions = sessions

    @property
    def name(self) -> str:
        return "receipt"

    @property
    def commands(self):
        return [("receipt", "Scan a receipt photo")]

    def register(self, app: Application) -> None:
        app.add_handler(CommandHandler("receipt", self.receipt_command))
        app.add_handler(CallbackQueryHandler(self.receipt_callback, pattern="^receipt$"))
        app.add_handler(CallbackQueryHandler(self.split_receipt, pattern="^split_receipt:"))
        app.add_handler(MessageHandler(filters.PHOTO & ~filters.COMMAND, self.handle_photo))

    async def receipt_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        user = update.effective_user
        if not chat or not user or chat.type == "private":
            return
        if not await self.ensure_plan(update, context, "scan"):
            return

        self.sessions.await_receipt(user.id)
        await self.safe_reply(update, context, SEND_RECEIPT_TEXT)
        self.log_analytics(update, "receipt_requested")

    async def receipt_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if not query or not query.message:
            return
        if not await self.ensure_plan(update, context, "scan"):
            return

        self.sessions.await_receipt(query.from_user.id)
        await context.bot.send_message(chat_id=query.message.chat.id, text=SEND_RECEIPT_TEXT)
        await query.answer()

    async def handle_photo(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.message
        user = update.effective_user
        chat = update.effective_chat
        if not message or not message.photo or not user or not chat:
            return
        if not self.sessions.is_awaiting(user.id):
            return

        if not self.plans.check_premium_access(user.id, "scan"):
            await message.reply_text(PREMIUM_REQUIRED_TEXT, reply_markup=pricing_keyboard(config.PRICING_URL, user.id))
            return

        self.sessions.done(user.id)
        if chat.type == "private":
            return

        photo = message.photo[-1]
        telegram_file = await photo.get_file()
        buffer = BytesIO()
        await telegram_file.download_to_memory(buffer)

        progress_msg = await message.reply_text(PROCESSING_TEXT)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.scanner.scan, buffer.getvalue())

        receipt = result.data
        try:
            groups.save_receipt_scan(
                user_id=user.id,
                chat_id=chat.id,
                success=result.ok,
                items=receipt.items if receipt else None,
                subtotal=receipt.summary.subtotal if receipt else None,
                total=receipt.summary.total if receipt else None,
                service_charge=receipt.summary.service_charge if receipt else None,
                service_tax=receipt.summary.service_tax if receipt else None,
                store_name=receipt.metadata.store_name if receipt else None,
                receipt_date=receipt.metadata.date if receipt else None,
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to record receipt scan for user {user.id} in {chat.id}: {e}")

        if not result.ok or receipt is None:
            logger.warning(f"Receipt scan failed for user {user.id} in {chat.id}: {result.error}")
            await progress_msg.edit_text(SCAN_FAILED_TEXT)
            self.log_analytics(update, "receipt_failed", extra=result.error)
            return

        token = self.sessions.store_receipt(receipt)
        text = render_receipt(receipt, receipt_charges(receipt.summary))
        try:
            await progress_msg.edit_text(text, parse_mode="MarkdownV2", reply_markup=receipt_keyboard(token))
        except TelegramError as e:
            logger.warning(f"Failed to edit message: {e}")
            await message.reply_text(text, parse_mode="MarkdownV2", reply_markup=receipt_keyboard(token))

        await self.plans.usage.increment(user.id, scans=1)
        self.log_analytics(update, "receipt_scanned", extra=self.scanner.get_current_model())
        await self.remind_expiry(context.bot, user.id)
        logger.info(f"Receipt with {len(receipt.items)} items scanned for user {user.id} in {chat.id}")

    async def split_receipt(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if not query or not query.data:
            return
        if not await self.ensure_plan(update, context, "scan"):
            return

        token = query.data.split(":", 1)[1]
        receipt = self.sessions.get_receipt(token)
        if receipt is None:
            await query.answer(RECEIPT_EXPIRED_TEXT, show_alert=True)
            return

        charges = receipt_charges(receipt.summary)
        items = apply_charges(receipt)
        description = (
            f"Receipt from {receipt.metadata.store_name or 'store'} "
            f"on {receipt.metadata.date or 'unknown date'}"
        )
        url = add_split_url(config.APP_HOST, receipt.summary.total, description, items, charges)

        try:
            await context.bot.send_message(
                chat_id=query.from_user.id,
                text=SPLIT_RECEIPT_TEXT,
                reply_markup=web_app_keyboard("➗ Split receipt", url),
            )
        except TelegramError as e:
            logger.warning(f"Could not send receipt split link to {query.from_user.id}: {e}")
            await query.answer("Start a private chat with me first, then tap again.", show_alert=True)
            return

        await query.answer()
        self.log_analytics(update, "receipt_split_opened")
