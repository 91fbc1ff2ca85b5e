"""In-process window counters.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  This is the accepted degradation while the shared store is unreachable.
- Thread-safe: the read-modify-write of a counter happens under one lock.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from compiler_api.adapters.rate_limit.base import AbstractCounterStore, CounterEntry


@dataclass
class _WindowState:
    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter map from composite key to (count, expiry).

    A window starts at the first increment for a key and lasts ``window_ms``.
    An expired entry is never mutated: the next increment replaces it with a
    fresh one.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sweep_every: int = 1000,
    ) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning UNIX time in seconds.
            sweep_every: Purge expired entries after this many increments.

        Raises:
            ValueError: If sweep_every is invalid.
        """
        if sweep_every < 1:
            raise ValueError("sweep_every must be >= 1")

        self._clock = clock
        self._sweep_every = sweep_every
        self._lock = threading.Lock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._ops_since_sweep = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    async def increment(self, key: str, window_ms: int) -> CounterEntry:
        return self.increment_sync(key, window_ms)

    def increment_sync(self, key: str, window_ms: int) -> CounterEntry:
        """Blocking variant of :meth:`increment`, safe across threads.

        Raises:
            ValueError: If key is empty or window_ms is invalid.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        with self._lock:
            now = self._clock()
            state = self._state_by_key.get(key)
            if state is None or now >= state.expires_at:
                state = _WindowState(count=0, expires_at=now + window_ms / 1000.0)
                self._state_by_key[key] = state

            state.count += 1
            entry = CounterEntry(count=state.count, expires_at=state.expires_at)

            self._ops_since_sweep += 1
            if self._ops_since_sweep >= self._sweep_every:
                self._sweep_expired_locked(now)

            return entry

    def get(self, key: str) -> CounterEntry | None:
        """Current entry for ``key`` without counting, None when absent or expired."""
        with self._lock:
            state = self._state_by_key.get(key)
            if state is None or self._clock() >= state.expires_at:
                return None
            return CounterEntry(count=state.count, expires_at=state.expires_at)

    def reset(self) -> None:
        """Drop every counter."""
        with self._lock:
            self._state_by_key.clear()
            self._ops_since_sweep = 0

    def _sweep_expired_locked(self, now: float) -> None:
        expired = [k for k, state in self._state_by_key.items() if now >= state.expires_at]
        for key in expired:
            del self._state_by_key[key]
        self._ops_since_sweep = 0
