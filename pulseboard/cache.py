"""
In-memory TTL cache for upstream responses, keyed by (endpoint, period label).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


def is_fresh(timestamp: float, now: float, ttl: float) -> bool:
    if ttl <= 0:
        return False
    return (now - timestamp) < ttl


class ResponseCache:
    def __init__(self, ttl: float, clock: Callable[[], float] = time.time) -> None:
        self.ttl = float(ttl)
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[Any, float]] = {}

    def get(self, key: CacheKey, now: Optional[float] = None) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, ts = entry
        now = self._clock() if now is None else now
        if not is_fresh(ts, now, self.ttl):
            logger.debug("Cache entry %s expired", key)
            self._entries.pop(key, None)
            return None
        return payload

    def set(self, key: CacheKey, payload: Any, now: Optional[float] = None) -> None:
        self._entries[key] = (payload, self._clock() if now is None else now)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
