#!/usr/bin/env python3
"""
In-process TTL cache.

Entries live until overwritten or until a read finds them expired; there is
no background sweep and no size bound. The clock is injectable so tests can
move time without sleeping.
"""

from time import time
from typing import Any, Callable, Dict, Optional

from config import get_logger
from models import CacheEntry

logger = get_logger("cache")


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time) -> None:
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            logger.debug(f"Cache entry expired: {key}")
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store value under key for ttl seconds, overwriting any previous entry."""
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl=ttl)

    def contains(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
