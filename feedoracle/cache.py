"""
Response cache.

Keeps each provider's recent readings per ``(data_type, subject)`` so that
repeated rounds do not hit rate-limited upstreams. Entries expire after a
TTL; once a provider's cache is full the oldest entry is evicted.
"""

import time
from collections import OrderedDict
from typing import Callable, Optional

from feedoracle.models import ProviderReading

CacheKey = tuple[str, str]


class ResponseCache:
    """TTL cache with FIFO eviction for one provider."""

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        # OrderedDict keeps insertion order for FIFO eviction
        self._entries: OrderedDict[CacheKey, tuple[float, ProviderReading]] = OrderedDict()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def get(self, data_type: str, subject: str) -> Optional[ProviderReading]:
        """Cached reading, or None when missing or expired."""
        key = (data_type, subject.upper())
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, reading = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return reading

    def put(self, data_type: str, subject: str, reading: ProviderReading) -> None:
        if not self.enabled:
            return
        key = (data_type, subject.upper())
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), reading)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
