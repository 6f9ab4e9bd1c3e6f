#!/usr/bin/env python3
"""
SplitBot - A Telegram bot that splits group expenses and settles debts.
"""
import logging
import os

from sqlalchemy.engine import make_url

import config
from core import SplitBot, ReceiptScanner, PlanCache
from plugins import HelpPlugin, GroupPlugin, DebtsPlugin, ReceiptPlugin, PlansPlugin, StatsPlugin
from storage import ReceiptSessions, PlanService, UsageStats, init_database, create_tables

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO
)
logger = logging.getLogger(__name__)


def ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        directory = os.path.dirname(url.database)
        if directory:
            os.makedirs(directory, exist_ok=True)


def main():
    config.validate_config()

    ensure_sqlite_directory(config.DATABASE_URL)
    if not init_database(config.DATABASE_URL):
        raise RuntimeError(f"Could not connect to database at {config.DATABASE_URL}")
    create_tables()

    plans = PlanService(PlanCache(ttl_seconds=config.PLAN_CACHE_TTL), UsageStats(config.REDIS_URL))
    scanner = ReceiptScanner(config.OPENAI_API_KEY, config.RECEIPT_MODEL)
    sessions = ReceiptSessions()

    bot = SplitBot(config.BOT_TOKEN or "")
    bot.register_plugin(HelpPlugin())
    bot.register_plugin(GroupPlugin(plans))
    bot.register_plugin(DebtsPlugin(plans))
    bot.register_plugin(ReceiptPlugin(plans, scanner, sessions))
    bot.register_plugin(PlansPlugin(plans))
    bot.register_plugin(StatsPlugin())

    bot.setup()

    logger.info("🤖 SplitBot starting up...")
    bot.run(webhook_url=config.WEBHOOK_URL or "", port=config.PORT)


if __name__ == "__main__":
    main()
