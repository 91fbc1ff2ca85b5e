"""Counter store interfaces.

Limiter policies only ever talk to this abstraction, so the process-local
store and the shared Redis store are interchangeable behind the failover
adapter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterEntry:
    """State of one composite key right after an increment.

    Attributes:
        count: Increments admitted to the counter in the current window,
            including the one that produced this entry.
        expires_at: UNIX epoch seconds at which the window closes, or None
            when the backing store could not report it.
    """

    count: int
    expires_at: float | None


class AbstractCounterStore(ABC):
    """Interface for window counters keyed by composite key."""

    @abstractmethod
    async def increment(self, key: str, window_ms: int) -> CounterEntry:
        """Atomically add one to ``key`` within its current window.

        The first increment of a window starts the window (and fixes its
        expiry); later increments inside the window keep that expiry. Once the
        window has elapsed the next increment starts a fresh entry at 1.

        Args:
            key: Composite key (policy name + resolved identity).
            window_ms: Window length in milliseconds.

        Returns:
            CounterEntry for the key after the increment.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None
