"""Shared window counters backed by Redis.

Increment and expiry happen inside one Lua script so concurrent workers can
never observe a counter without its window: INCR, then PEXPIRE on the first
increment of a window. A key that somehow lost its TTL gets a fresh one
instead of living forever.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from compiler_api.adapters.rate_limit.base import AbstractCounterStore, CounterEntry
from compiler_api.core.errors import CounterStoreError

logger = logging.getLogger(__name__)

INCREMENT_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
local ttl = redis.call('PTTL', KEYS[1])
if count == 1 or ttl < 0 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store delegating to a Redis server."""

    def __init__(
        self,
        client: Any,
        *,
        key_prefix: str = "rl:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Wrap an existing ``redis.asyncio.Redis`` (or compatible) client.

        Args:
            client: Async Redis client.
            key_prefix: Namespace prepended to every key.
            clock: Time source returning UNIX time in seconds.
        """
        self._client = client
        self._key_prefix = key_prefix
        self._clock = clock

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "rl:",
        socket_timeout: float | None = None,
    ) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        Args:
            url: ``redis://`` or ``rediss://`` URL.
            key_prefix: Namespace prepended to every key.
            socket_timeout: Socket connect/read timeout in seconds.
        """
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, key_prefix=key_prefix)

    async def ping(self) -> None:
        """Check that the server answers.

        Raises:
            CounterStoreError: If the server cannot be reached.
        """
        try:
            await self._client.ping()
        except (RedisError, OSError) as exc:
            raise CounterStoreError(f"Redis ping failed: {exc}") from exc

    async def increment(self, key: str, window_ms: int) -> CounterEntry:
        """Increment ``key`` atomically on the server.

        Raises:
            CounterStoreError: On any connection or command failure.
        """
        try:
            count, ttl_ms = await self._client.eval(
                INCREMENT_SCRIPT, 1, f"{self._key_prefix}{key}", int(window_ms)
            )
        except (RedisError, OSError) as exc:
            raise CounterStoreError(f"Redis increment failed: {exc}") from exc

        ttl_ms = int(ttl_ms)
        expires_at = self._clock() + ttl_ms / 1000.0 if ttl_ms >= 0 else None
        return CounterEntry(count=int(count), expires_at=expires_at)

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:
            logger.warning(
                "counter_store.close_failed",
                extra={"store": "redis", "error_msg": str(exc)},
            )
