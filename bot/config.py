"""Configuration for SplitBot."""
import os

BOT_TOKEN = os.environ.get("BOT_TOKEN")
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
RECEIPT_MODEL = os.environ.get("RECEIPT_MODEL", "gpt-4o-mini")
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///data/splitbot.sqlite")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
APP_HOST = os.environ.get("APP_HOST", "").rstrip("/")
PRICING_URL = os.environ.get("PRICING_URL", "https://chopchopsplit.com/#pricing")
CURRENCY = os.environ.get("CURRENCY", "RM")
PLAN_CACHE_TTL = int(os.environ.get("PLAN_CACHE_TTL", "300"))
PORT = int(os.environ.get("PORT", "5000"))
WEBHOOK_URL = os.environ.get("WEBHOOK_URL")

ADMIN_USER_IDS = {
    int(user_id) for user_id in os.environ.get("ADMIN_USER_IDS", "").split(",") if user_id.strip()
}

def validate_config():
    missing = [k for k in ["BOT_TOKEN", "OPENAI_API_KEY"] if not os.environ.get(k)]
    if missing:
        raise ValueError(f"Missing: {', '.join(missing)}")
