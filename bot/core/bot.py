"""
Application wiring for SplitBot.

Plugins contribute handlers and menu commands. Commands are published per
chat scope so group chats only list the ledger commands and private chats
only list the account ones.
"""
import logging
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from telegram import (
    BotCommand,
    BotCommandScope,
    BotCommandScopeAllGroupChats,
    BotCommandScopeAllPrivateChats,
    BotCommandScopeDefault,
    Update,
)
from telegram.error import TelegramError
from telegram.ext import Application, ApplicationBuilder, ContextTypes

if TYPE_CHECKING:
    from plugins import Plugin

logger = logging.getLogger(__name__)

ERROR_TEXT = "😵 Something went wrong on my side. Please try again in a moment."


def merge_commands(*command_lists: List[Tuple[str, str]]) -> List[BotCommand]:
    """Menu entries in order, keeping the first description of a repeated command."""
    merged: Dict[str, str] = {}
    for commands in command_lists:
        for command, description in commands:
            merged.setdefault(command, description)
    return [BotCommand(command, description) for command, description in merged.items()]


class SplitBot:
    def __init__(self, token: str):
        self.token = token
        self.application: Optional[Application] = None
        self._plugins: List['Plugin'] = []

    @property
    def plugins(self) -> List['Plugin']:
        return list(self._plugins)

    def register_plugin(self, plugin: 'Plugin') -> None:
        if any(existing.name == plugin.name for existing in self._plugins):
            raise ValueError(f"Plugin '{plugin.name}' is already registered")
        self._plugins.append(plugin)
        logger.info(f"Registered plugin: {plugin.name}")

    def command_menus(self) -> List[Tuple[BotCommandScope, List[BotCommand]]]:
        group = [plugin.commands for plugin in self._plugins]
        private = [plugin.private_commands for plugin in self._plugins]
        return [
            (BotCommandScopeAllGroupChats(), merge_commands(*group)),
            (BotCommandScopeAllPrivateChats(), merge_commands(*private)),
            (BotCommandScopeDefault(), merge_commands(*private, *group)),
        ]

    def setup(self) -> Application:
        self.application = ApplicationBuilder().token(self.token).post_init(self._post_init).build()
        for plugin in self._plugins:
            plugin.register(self.application)
            logger.info(f"Plugin '{plugin.name}' handlers registered")
        self.application.add_error_handler(self._on_error)
        return self.application

    async def _post_init(self, application: Application) -> None:
        for plugin in self._plugins:
            await plugin.post_init(application)
        await self._setup_commands(application)

    async def _setup_commands(self, application: Application) -> None:
        for scope, commands in self.command_menus():
            if not commands:
                continue
            try:
                await application.bot.set_my_commands(commands, scope=scope)
            except TelegramError as e:
                logger.warning(f"Failed to set {scope.type} commands: {e}")
                continue
            logger.info(f"Registered {len(commands)} {scope.type} commands")

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error(f"Error while handling update: {context.error}", exc_info=context.error)
        if isinstance(update, Update) and update.effective_chat:
            try:
                await context.bot.send_message(chat_id=update.effective_chat.id, text=ERROR_TEXT)
            except TelegramError as e:
                logger.warning(f"Failed to send error message: {e}")

    def run(self, webhook_url: str = "", port: int = 8443) -> None:
        """Serve Telegram updates: through a webhook when a public URL is configured, else by polling."""
        application = self.application or self.setup()
        if webhook_url:
            url_path = self.token
            logger.info(f"Starting bot in webhook mode on port {port}...")
            application.run_webhook(
                listen="0.0.0.0",
                port=port,
                url_path=url_path,
                webhook_url=f"{webhook_url.rstrip('/')}/{url_path}",
            )
        else:
            logger.info("Starting bot in polling mode...")
            application.run_polling(allowed_updates=Update.ALL_TYPES)
