"""Counter stores for admission control.

Policies count through :class:`FailoverCounterStore`, which prefers the
shared Redis store and falls back to the in-process store while Redis is
unreachable.
"""

from compiler_api.adapters.rate_limit.base import AbstractCounterStore, CounterEntry
from compiler_api.adapters.rate_limit.failover import (
    ConnectivityState,
    FailoverCounterStore,
    StoreConnectivity,
)
from compiler_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from compiler_api.adapters.rate_limit.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "ConnectivityState",
    "CounterEntry",
    "FailoverCounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "StoreConnectivity",
]
