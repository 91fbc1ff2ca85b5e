"""Store adapter: shared counters with an in-process fallback.

The adapter picks one of two branches for every increment:

- shared store, while it is connected (or when a reconnect probe is due);
- in-process fallback, while it is not.

A shared-store error or timeout flips the connectivity state to disconnected
and that increment is counted locally instead. Callers never see a store
failure; during an outage limits are enforced per process.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
from typing import Callable

from compiler_api.adapters.rate_limit.base import AbstractCounterStore, CounterEntry
from compiler_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from compiler_api.adapters.rate_limit.redis_store import RedisCounterStore
from compiler_api.core.errors import CounterStoreError

logger = logging.getLogger(__name__)


class ConnectivityState(str, enum.Enum):
    UNCONFIGURED = "unconfigured"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class StoreConnectivity:
    """Reachability of the shared counter store.

    Transitions are applied under a lock and logged once per change. Readers
    may briefly see the previous state during a transition; counts never
    depend on more than one read per increment.
    """

    def __init__(
        self,
        initial: ConnectivityState = ConnectivityState.DISCONNECTED,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = initial
        self._clock = clock
        self._lock = threading.Lock()
        self._changed_at = clock()
        self._last_probe_at: float | None = None

    @property
    def state(self) -> ConnectivityState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectivityState.CONNECTED

    def mark_connected(self) -> None:
        with self._lock:
            if self._state is ConnectivityState.CONNECTED:
                return
            previous, self._state = self._state, ConnectivityState.CONNECTED
            self._changed_at = self._clock()
        logger.info(
            "counter_store.connected",
            extra={"store": "redis", "previous_state": previous.value},
        )

    def mark_disconnected(self, reason: str) -> None:
        with self._lock:
            self._last_probe_at = self._clock()
            if self._state is ConnectivityState.DISCONNECTED:
                return
            previous, self._state = self._state, ConnectivityState.DISCONNECTED
            self._changed_at = self._clock()
        logger.warning(
            "counter_store.disconnected",
            extra={
                "store": "redis",
                "previous_state": previous.value,
                "reason": reason,
                "fallback": "memory",
            },
        )

    def claim_probe(self, interval_seconds: float) -> bool:
        """Return True if the caller should retry the shared store now.

        At most one caller per interval wins the probe; everyone else keeps
        using the fallback until the probe succeeds.
        """
        with self._lock:
            if self._state is not ConnectivityState.DISCONNECTED:
                return False
            now = self._clock()
            if self._last_probe_at is not None and now - self._last_probe_at < interval_seconds:
                return False
            self._last_probe_at = now
            return True


class FailoverCounterStore(AbstractCounterStore):
    """Counter store that survives shared store outages.

    Attributes:
        connectivity: The connectivity state owned by this adapter.
    """

    def __init__(
        self,
        *,
        shared: RedisCounterStore | None = None,
        fallback: InMemoryCounterStore | None = None,
        connectivity: StoreConnectivity | None = None,
        call_timeout_seconds: float = 0.5,
        reconnect_interval_seconds: float = 5.0,
    ) -> None:
        self._shared = shared
        self._fallback = fallback or InMemoryCounterStore()
        if connectivity is None:
            connectivity = StoreConnectivity(
                ConnectivityState.DISCONNECTED if shared is not None else ConnectivityState.UNCONFIGURED
            )
        self.connectivity = connectivity
        self._call_timeout = call_timeout_seconds
        self._reconnect_interval = reconnect_interval_seconds
        self._in_flight: set[asyncio.Future] = set()
        self._closed = False

    @property
    def fallback(self) -> InMemoryCounterStore:
        return self._fallback

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def status(self) -> dict[str, object]:
        """Describe which store currently receives increments."""
        connected = self._shared is not None and not self._closed and self.connectivity.is_connected
        return {"redis": connected, "store": "redis" if connected else "memory"}

    async def connect(self) -> bool:
        """Probe the shared store once and record the result.

        Returns:
            True if the shared store answered.
        """
        if self._shared is None:
            logger.info("counter_store.not_configured", extra={"store": "memory"})
            return False
        self._closed = False
        try:
            await asyncio.wait_for(self._shared.ping(), timeout=self._call_timeout)
        except (CounterStoreError, asyncio.TimeoutError, OSError) as exc:
            self.connectivity.mark_disconnected(reason=type(exc).__name__)
            return False
        self.connectivity.mark_connected()
        return True

    async def increment(self, key: str, window_ms: int) -> CounterEntry:
        if self._use_shared():
            entry = await self._increment_shared(key, window_ms)
            if entry is not None:
                return entry
        return await self._fallback.increment(key, window_ms)

    def _use_shared(self) -> bool:
        if self._shared is None or self._closed:
            return False
        if self.connectivity.is_connected:
            return True
        return self.connectivity.claim_probe(self._reconnect_interval)

    async def _increment_shared(self, key: str, window_ms: int) -> CounterEntry | None:
        # Shielded so an aborted request still lands its increment.
        task = asyncio.ensure_future(self._shared.increment(key, window_ms))
        self._in_flight.add(task)
        task.add_done_callback(self._forget)
        try:
            entry = await asyncio.wait_for(asyncio.shield(task), timeout=self._call_timeout)
        except asyncio.TimeoutError:
            self.connectivity.mark_disconnected(reason="timeout")
            return None
        except Exception as exc:  # any store failure routes this call to the fallback
            self.connectivity.mark_disconnected(reason=f"{type(exc).__name__}: {exc}")
            return None
        self.connectivity.mark_connected()
        return entry

    def _forget(self, task: asyncio.Future) -> None:
        self._in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "counter_store.increment_failed",
                extra={"store": "redis", "error_type": type(task.exception()).__name__},
            )

    async def close(self, timeout: float = 5.0) -> None:
        """Drain in-flight shared increments, then release the connection.

        Args:
            timeout: Maximum seconds to wait for in-flight increments.
        """
        self._closed = True
        pending = set(self._in_flight)
        if pending:
            done, still_pending = await asyncio.wait(pending, timeout=timeout)
            if still_pending:
                logger.warning(
                    "counter_store.shutdown_abandoned",
                    extra={"completed": len(done), "abandoned": len(still_pending)},
                )
        if self._shared is not None:
            await self._shared.close()
            if self.connectivity.state is ConnectivityState.CONNECTED:
                self.connectivity.mark_disconnected(reason="shutdown")
            logger.info("counter_store.closed", extra={"store": "redis"})
