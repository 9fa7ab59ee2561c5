"""In-memory counter store.

Notes:
- Per-process only: running multiple workers gives each its own counters.
- Thread-safe: a single lock guards every read-modify-write.
- Expired keys are reaped lazily on access and on writes.
"""

from __future__ import annotations

import fnmatch
import threading
import time
from dataclasses import dataclass
from typing import Callable

from quota_gateway.adapters.store.base import AbstractCounterStore


@dataclass
class _Counter:
    value: int
    expires_at: float | None


class InMemoryCounterStore(AbstractCounterStore):
    """Dictionary-backed counter store with per-key TTLs.

    Mirrors the Redis semantics the quota services rely on: ``INCR`` creates
    missing keys, ``EXPIRE`` on a missing key is a no-op, and reading an
    expired key yields 0.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[str, _Counter] = {}

    def _live_counter_locked(self, key: str, now: float) -> _Counter | None:
        counter = self._counters.get(key)
        if counter is None:
            return None
        if counter.expires_at is not None and counter.expires_at <= now:
            del self._counters[key]
            return None
        return counter

    def _add_locked(self, key: str, amount: int, ttl_seconds: int | None) -> int:
        now = self._clock()
        counter = self._live_counter_locked(key, now)
        if counter is None:
            expires_at = now + ttl_seconds if ttl_seconds is not None else None
            counter = _Counter(value=0, expires_at=expires_at)
            self._counters[key] = counter
        counter.value += amount
        return counter.value

    async def increment(self, key: str, *, ttl_seconds: int | None = None) -> int:
        if not key:
            raise ValueError("key must be a non-empty string")
        with self._lock:
            return self._add_locked(key, 1, ttl_seconds)

    async def increment_by(self, key: str, amount: int, *, ttl_seconds: int | None = None) -> int:
        if not key:
            raise ValueError("key must be a non-empty string")
        if amount < 0:
            raise ValueError("amount must be >= 0")
        with self._lock:
            value = self._add_locked(key, amount, None)
            if ttl_seconds is not None:
                self._counters[key].expires_at = self._clock() + ttl_seconds
            return value

    async def get(self, key: str) -> int:
        with self._lock:
            counter = self._live_counter_locked(key, self._clock())
            return counter.value if counter else 0

    async def set_expiry(self, key: str, seconds: int) -> None:
        with self._lock:
            now = self._clock()
            counter = self._live_counter_locked(key, now)
            if counter is not None:
                counter.expires_at = now + seconds

    async def delete_matching(self, pattern: str) -> list[str]:
        with self._lock:
            now = self._clock()
            deleted = []
            for key in list(self._counters):
                if self._live_counter_locked(key, now) is None:
                    continue
                if fnmatch.fnmatchcase(key, pattern):
                    del self._counters[key]
                    deleted.append(key)
            return deleted

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for key in list(self._counters) if self._live_counter_locked(key, now))
