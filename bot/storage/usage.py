"""
Redis-based usage counters for plan limits.
Tracks receipt scans, trips and travelers per user.
"""
import logging
from typing import Dict

import redis.asyncio as redis

logger = logging.getLogger(__name__)

COUNTERS = ("scans", "trips", "travelers")


class UsageStats:
    def __init__(self, redis_url: str):
        self.redis = redis.from_url(redis_url)

    @staticmethod
    def _key(telegram_id: int) -> str:
        return f"usage:stats:{telegram_id}"

    async def get_stats(self, telegram_id: int) -> Dict[str, int]:
        """Current counters for user; missing counters are zero."""
        try:
            raw = await self.redis.hgetall(self._key(telegram_id))
        except Exception as e:
            logger.error(f"Redis error in get_stats for {telegram_id}: {e}")
            raw = {}

        stats = {name: 0 for name in COUNTERS}
        for field, value in (raw or {}).items():
            name = field.decode() if isinstance(field, bytes) else field
            if name in stats:
                stats[name] = int(value)
        return stats

    async def increment(self, telegram_id: int, scans: int = 0, trips: int = 0, travelers: int = 0) -> bool:
        updates = {"scans": scans, "trips": trips, "travelers": travelers}
        try:
            key = self._key(telegram_id)
            for name, amount in updates.items():
                if amount:
                    await self.redis.hincrby(key, name, amount)
            logger.info(f"Updated usage stats for {telegram_id}: {updates}")
            return True
        except Exception as e:
            logger.error(f"Redis error in increment for {telegram_id}: {e}")
            return False

    async def reset(self, telegram_id: int) -> bool:
        try:
            await self.redis.hset(self._key(telegram_id), mapping={name: 0 for name in COUNTERS})
            logger.info(f"Reset usage stats for user {telegram_id}")
            return True
        except Exception as e:
            logger.error(f"Redis error in reset for {telegram_id}: {e}")
            return False

    async def health_check(self) -> bool:
        """Check if Redis connection is healthy."""
        try:
            await self.redis.ping()
            return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False
