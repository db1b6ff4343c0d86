"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired counters are swept every ``purge_interval`` increments, so the dict
  holds roughly the live windows plus one interval's worth of new keys.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.counter_store.base import AbstractCounterStore

DEFAULT_PURGE_INTERVAL = 1000


@dataclass
class _Counter:
    value: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store backed by a dict of ``key -> (value, expires_at)``.

    Expired entries behave exactly like absent keys: the next increment
    recreates them with value 1 and a fresh TTL.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        purge_interval: int = DEFAULT_PURGE_INTERVAL,
    ) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
            purge_interval: Increments between sweeps of expired counters.
        """
        if purge_interval < 1:
            raise ValueError("purge_interval must be >= 1")
        self._clock = clock
        self._purge_interval = purge_interval
        self._since_purge = 0
        self._lock = threading.RLock()
        self._counters: dict[str, _Counter] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Increment ``key``, setting its expiry only on creation.

        Raises:
            ValueError: If key is empty or ttl_seconds is invalid.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        now = self._clock()
        with self._lock:
            self._since_purge += 1
            if self._since_purge >= self._purge_interval:
                self._purge_locked(now)

            counter = self._counters.get(key)
            if counter is None or counter.expires_at <= now:
                counter = _Counter(value=0, expires_at=now + ttl_seconds)
                self._counters[key] = counter
            counter.value += 1
            return counter.value

    def ttl(self, key: str) -> float | None:
        """Remaining lifetime of ``key`` in seconds, or None when absent."""
        now = self._clock()
        with self._lock:
            counter = self._counters.get(key)
            if counter is None or counter.expires_at <= now:
                return None
            return counter.expires_at - now

    def purge_expired(self) -> int:
        """Drop expired counters and return how many were removed."""
        now = self._clock()
        with self._lock:
            return self._purge_locked(now)

    def _purge_locked(self, now: float) -> int:
        expired = [k for k, c in self._counters.items() if c.expires_at <= now]
        for key in expired:
            del self._counters[key]
        self._since_purge = 0
        return len(expired)
