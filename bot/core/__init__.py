"""Core bot components."""
from core.bot import SplitBot
from core.ai import ReceiptScanner
from core.plan_cache import PlanCache

__all__ = ['SplitBot', 'ReceiptScanner', 'PlanCache']
