"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired entries are swept on every increment, so the store only holds keys
  seen in their current window.
"""

from __future__ import annotations

import heapq
import threading
import time
from dataclasses import dataclass
from typing import Callable

from request_throttling.adapters.counter_store.base import AbstractCounterStore


@dataclass
class _CounterEntry:
    count: int
    expires_at: float | None = None


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping counts in a process-local dict.

    Entries behave like Redis keys: ``expire`` arms a TTL, and once it elapses
    the entry vanishes so the next increment recreates it at 1.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source returning seconds; injectable for tests.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _CounterEntry] = {}
        self._deadlines: list[tuple[float, str]] = []

    def _sweep_expired(self, now: float) -> None:
        """Drop every entry whose TTL has elapsed. Caller holds the lock."""
        while self._deadlines and self._deadlines[0][0] <= now:
            expires_at, key = heapq.heappop(self._deadlines)
            entry = self._entries.get(key)
            # A re-armed or recreated entry leaves a stale deadline behind
            if entry is not None and entry.expires_at == expires_at:
                del self._entries[key]

    def _get_live_entry(self, key: str, now: float) -> _CounterEntry | None:
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at is not None and entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    async def increment(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            self._sweep_expired(now)
            entry = self._get_live_entry(key, now)
            if entry is None:
                entry = _CounterEntry(count=0)
                self._entries[key] = entry
            entry.count += 1
            return entry.count

    async def expire(self, key: str, seconds: int) -> None:
        now = self._clock()
        with self._lock:
            entry = self._get_live_entry(key, now)
            if entry is not None:
                entry.expires_at = now + seconds
                heapq.heappush(self._deadlines, (entry.expires_at, key))

    def count(self, key: str) -> int:
        """Return the live count for ``key`` (0 when absent or expired)."""
        with self._lock:
            entry = self._get_live_entry(key, self._clock())
            return entry.count if entry else 0

    def ttl(self, key: str) -> float | None:
        """Return remaining seconds before ``key`` expires, or None without a TTL."""
        now = self._clock()
        with self._lock:
            entry = self._get_live_entry(key, now)
            if entry is None or entry.expires_at is None:
                return None
            return entry.expires_at - now
