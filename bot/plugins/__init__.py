"""
Plugin system for SplitBot.
Each plugin is a self-contained module that registers its own handlers.
"""
from abc import ABC, abstractmethod
from telegram.ext import Application
from typing import List, Tuple


class Plugin(ABC):
    """Base class for all plugins."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Plugin name for logging."""
        pass

    @property
    def commands(self) -> List[Tuple[str, str]]:
        """(command, description) tuples for the group chat menu."""
        return []

    @property
    def private_commands(self) -> List[Tuple[str, str]]:
        """(command, description) tuples for the private chat menu."""
        return []

    @abstractmethod
    def register(self, app: Application) -> None:
        """Register handlers with the application."""
        pass

    async def post_init(self, app: Application) -> None:
        """Runs once the application is initialized, before updates arrive."""
        return None


# Import plugins for convenience
from plugins.help import HelpPlugin
from plugins.group import GroupPlugin
from plugins.debts import DebtsPlugin
from plugins.receipt import ReceiptPlugin
from plugins.plans import PlansPlugin
from plugins.stats import StatsPlugin

__all__ = [
    'Plugin',
    'HelpPlugin',
    'GroupPlugin',
    'DebtsPlugin',
    'ReceiptPlugin',
    'PlansPlugin',
    'StatsPlugin',
]
