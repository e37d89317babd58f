"""
Feed Cache

A single time-boxed slot holding the full, unfiltered post feed. Filtered
and paginated reads never go through it.
"""

import copy
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from config import settings
from data.models import BlogPost


@dataclass
class CacheEntry:
    data: List[BlogPost]
    timestamp: float


class FeedCache:
    """Time-boxed memo of the post feed with get/set/invalidate."""

    def __init__(self, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl_seconds: Freshness window; defaults to settings.POSTS_CACHE_DURATION
            clock: Monotonic time source in seconds
        """
        self.ttl_seconds = settings.POSTS_CACHE_DURATION if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entry: Optional[CacheEntry] = None

    def get(self) -> Optional[List[BlogPost]]:
        """Return a copy of the cached feed while it is fresh, otherwise None (a miss)."""
        if self._entry is None:
            return None
        if self._clock() - self._entry.timestamp >= self.ttl_seconds:
            return None
        return copy.deepcopy(self._entry.data)

    def set(self, data: List[BlogPost]) -> None:
        self._entry = CacheEntry(data=copy.deepcopy(data), timestamp=self._clock())

    def invalidate(self) -> None:
        self._entry = None


# Shared feed cache for the process
feed_cache = FeedCache()
