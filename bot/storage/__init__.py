"""Storage modules for SplitBot."""
from storage.memory import ReceiptSessions
from storage.analytics import log_event, get_analytics
from storage.database import init_database, create_tables
from storage.plans import PlanService
from storage.usage import UsageStats

__all__ = ['ReceiptSessions', 'log_event', 'get_analytics', 'init_database', 'create_tables', 'PlanService', 'UsageStats']
