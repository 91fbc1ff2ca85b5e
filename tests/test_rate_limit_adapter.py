"""Unit tests for the in-memory and Redis counter stores."""

import asyncio
import threading
from unittest.mock import AsyncMock, Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from compiler_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from compiler_api.adapters.rate_limit.redis_store import INCREMENT_SCRIPT, RedisCounterStore
from compiler_api.core.errors import CounterStoreError


@pytest.mark.asyncio
async def test_counts_within_same_window() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryCounterStore(clock=clock)

    first = await store.increment("k", 60_000)
    second = await store.increment("k", 60_000)

    assert first.count == 1
    assert second.count == 2
    assert second.expires_at == 1060.0


@pytest.mark.asyncio
async def test_window_starts_at_first_increment() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryCounterStore(clock=clock)

    await store.increment("k", 10_000)
    clock.return_value = 1009.0
    entry = await store.increment("k", 10_000)

    assert entry.count == 2
    assert entry.expires_at == 1010.0


@pytest.mark.asyncio
async def test_expired_entry_is_replaced() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryCounterStore(clock=clock)

    await store.increment("k", 10_000)
    await store.increment("k", 10_000)

    clock.return_value = 1010.0
    entry = await store.increment("k", 10_000)

    assert entry.count == 1
    assert entry.expires_at == 1020.0


@pytest.mark.asyncio
async def test_isolated_by_key() -> None:
    store = InMemoryCounterStore(clock=Mock(return_value=1000.0))

    await store.increment("k1", 60_000)
    await store.increment("k1", 60_000)
    entry = await store.increment("k2", 60_000)

    assert entry.count == 1


def test_invalid_constructor_args() -> None:
    with pytest.raises(ValueError):
        InMemoryCounterStore(sweep_every=0)


def test_invalid_increment_args() -> None:
    store = InMemoryCounterStore()

    with pytest.raises(ValueError):
        store.increment_sync("", 1000)

    with pytest.raises(ValueError):
        store.increment_sync("k", 0)


def test_sweep_removes_expired_entries() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryCounterStore(clock=clock, sweep_every=3)

    store.increment_sync("a", 1000)
    store.increment_sync("b", 1000)
    assert len(store) == 2

    clock.return_value = 1005.0
    store.increment_sync("c", 1000)

    assert len(store) == 1


def test_reset_drops_counters() -> None:
    store = InMemoryCounterStore()
    store.increment_sync("k", 1000)
    store.reset()
    assert len(store) == 0
    assert store.increment_sync("k", 1000).count == 1


def test_threaded_increments_are_atomic() -> None:
    store = InMemoryCounterStore()
    threads_count, per_thread = 8, 250
    barrier = threading.Barrier(threads_count)

    def worker() -> None:
        barrier.wait()
        for _ in range(per_thread):
            store.increment_sync("shared", 60_000)

    threads = [threading.Thread(target=worker) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.increment_sync("shared", 60_000).count == threads_count * per_thread + 1


class TestRedisCounterStore:
    @pytest.mark.asyncio
    async def test_increment_runs_script_with_prefixed_key(self) -> None:
        client = Mock()
        client.eval = AsyncMock(return_value=[3, 45_000])
        store = RedisCounterStore(client, key_prefix="rl:", clock=Mock(return_value=1000.0))

        entry = await store.increment("compile:1.2.3.4", 60_000)

        client.eval.assert_awaited_once_with(INCREMENT_SCRIPT, 1, "rl:compile:1.2.3.4", 60_000)
        assert entry.count == 3
        assert entry.expires_at == 1045.0

    @pytest.mark.asyncio
    async def test_negative_ttl_means_unknown_expiry(self) -> None:
        client = Mock()
        client.eval = AsyncMock(return_value=["2", "-1"])
        store = RedisCounterStore(client)

        entry = await store.increment("k", 1000)

        assert entry.count == 2
        assert entry.expires_at is None

    @pytest.mark.asyncio
    async def test_command_failure_raises_counter_store_error(self) -> None:
        client = Mock()
        client.eval = AsyncMock(side_effect=RedisConnectionError("refused"))
        store = RedisCounterStore(client)

        with pytest.raises(CounterStoreError):
            await store.increment("k", 1000)

    @pytest.mark.asyncio
    async def test_ping_failure_raises_counter_store_error(self) -> None:
        client = Mock()
        client.ping = AsyncMock(side_effect=OSError("unreachable"))
        store = RedisCounterStore(client)

        with pytest.raises(CounterStoreError):
            await store.ping()

    @pytest.mark.asyncio
    async def test_close_swallows_connection_errors(self) -> None:
        client = Mock()
        client.aclose = AsyncMock(side_effect=RedisConnectionError("gone"))
        store = RedisCounterStore(client)

        await store.close()

        client.aclose.assert_awaited_once()

    def test_script_sets_expiry_only_for_new_windows(self) -> None:
        assert "INCR" in INCREMENT_SCRIPT
        assert "count == 1 or ttl < 0" in INCREMENT_SCRIPT


@pytest.mark.asyncio
async def test_concurrent_async_increments_are_atomic() -> None:
    store = InMemoryCounterStore()

    entries = await asyncio.gather(*(store.increment("k", 60_000) for _ in range(50)))

    assert sorted(e.count for e in entries) == list(range(1, 51))


def test_get_reads_without_counting() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryCounterStore(clock=clock)

    assert store.get("k") is None
    store.increment_sync("k", 1000)
    assert store.get("k").count == 1
    assert store.get("k").count == 1

    clock.return_value = 1001.0
    assert store.get("k") is None
