"""Time-bounded cache for plan lookups, keyed by user id."""
import time
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar
import logging

logger = logging.getLogger(__name__)

V = TypeVar("V")


class PlanCache(Generic[V]):
    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Any, Tuple[V, float]] = {}

    def get(self, key: Any) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, cached_at = entry
        if self._clock() - cached_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: Any, value: V) -> None:
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: Any) -> None:
        logger.info(f"Invalidating plan cache for user: {key}")
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Any) -> bool:
        return self.get(key) is not None
