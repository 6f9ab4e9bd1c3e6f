"""Admin-only usage statistics."""
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes
import logging

import config
from plugins.base import BasePlugin
from storage.analytics import get_analytics

logger = logging.getLogger(__name__)

STATS_TEXT = """📊 Usage statistics

Receipts scanned: {total_receipts} ({successful_scans} successful)
OCR accuracy: {ocr_accuracy}% over {processed_receipts} receipts
Splits: {total_splits} ({manual_splits} manual, {receipt_splits} from receipts)
Groups: {total_groups}"""


class StatsPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "stats"

    def register(self, app: Application) -> None:
        app.add_handler(CommandHandler("stats", self.stats))

    async def stats(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if not update.message or not user:
            return
        if user.id not in config.ADMIN_USER_IDS:
            logger.info(f"Ignoring /stats from non-admin {user.id}")
            return

        await update.message.reply_text(STATS_TEXT.format(**get_analytics()))
