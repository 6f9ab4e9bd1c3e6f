"""Help plugin."""
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes
from plugins.base import BasePlugin
import logging

logger = logging.getLogger(__name__)

HELP_TEXT = """🧮 *Splitting bills without the awkward maths*

*In a group:*
• /start \\- Register the group and let people join the split
• /split \\- Show who owes whom, with the fewest payments
• /receipt \\- Send me a receipt photo and I'll read it for you

*In a private chat:*
• /start \\- Open the web app to add splits and payments
• /plan \\- See your plan and what's left of it
• /help \\- You're reading it

_Debts are simplified, so nobody pays more transfers than needed\\._ ✨"""


class HelpPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "help"

    @property
    def commands(self):
        return [("help", "How to split with me")]

    @property
    def private_commands(self):
        return self.commands

    def register(self, app: Application) -> None:
        app.add_handler(CommandHandler("help", self.help_command))

    async def help_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return

        await update.message.reply_text(HELP_TEXT, parse_mode="MarkdownV2")
        self.log_analytics(update, "help_command")
        logger.info(f"Help shown to user {update.effective_user.id if update.effective_user else 'unknown'}")
