"""Unit tests for counter store adapters."""

from unittest.mock import AsyncMock, Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from request_throttling.adapters.counter_store import (
    InMemoryCounterStore,
    RedisCounterStore,
    create_counter_store,
)
from request_throttling.core.config import StoreSettings
from request_throttling.core.errors import StoreUnavailableError, ValidationAppError


class TestInMemoryCounterStore:
    @pytest.mark.asyncio
    async def test_increment_starts_at_one(self, memory_store):
        assert await memory_store.increment("k") == 1
        assert await memory_store.increment("k") == 2
        assert await memory_store.increment("other") == 1

    @pytest.mark.asyncio
    async def test_entry_vanishes_after_ttl(self, memory_store, clock):
        await memory_store.increment("k")
        await memory_store.expire("k", 10)
        await memory_store.increment("k")
        assert memory_store.ttl("k") == 10

        clock.return_value = 1010.0
        assert memory_store.count("k") == 0
        assert await memory_store.increment("k") == 1
        assert memory_store.ttl("k") is None

    @pytest.mark.asyncio
    async def test_expired_keys_are_swept_on_increment(self, memory_store, clock):
        for i in range(1000):
            key = f"10.0.{i // 256}.{i % 256}"
            await memory_store.increment(key)
            await memory_store.expire(key, 60)
        assert len(memory_store) == 1000

        clock.return_value = 5000.0
        assert await memory_store.increment("fresh") == 1

        assert len(memory_store) == 1
        assert memory_store.count("fresh") == 1

    @pytest.mark.asyncio
    async def test_sweep_keeps_entries_still_in_window(self, memory_store, clock):
        await memory_store.increment("old")
        await memory_store.expire("old", 10)
        clock.return_value = 1005.0
        await memory_store.increment("young")
        await memory_store.expire("young", 10)

        clock.return_value = 1010.0
        await memory_store.increment("trigger")

        assert memory_store.count("old") == 0
        assert memory_store.count("young") == 1
        assert len(memory_store) == 2

    @pytest.mark.asyncio
    async def test_entry_without_ttl_persists(self, memory_store, clock):
        await memory_store.increment("k")
        clock.return_value = 10_000_000.0
        assert await memory_store.increment("k") == 2

    @pytest.mark.asyncio
    async def test_expire_on_missing_key_is_noop(self, memory_store):
        await memory_store.expire("missing", 10)
        assert memory_store.count("missing") == 0
        assert memory_store.ttl("missing") is None

    @pytest.mark.asyncio
    async def test_ping_and_close(self, memory_store):
        assert await memory_store.ping() is True
        await memory_store.close()


def _redis_client() -> Mock:
    client = Mock()
    client.incr = AsyncMock(return_value=1)
    client.expire = AsyncMock(return_value=True)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


class TestRedisCounterStore:
    @pytest.mark.asyncio
    async def test_increment_uses_incr_with_prefix(self):
        client = _redis_client()
        client.incr.return_value = 7
        store = RedisCounterStore(client, key_prefix="throttle:")

        assert await store.increment("10.0.0.1") == 7
        client.incr.assert_awaited_once_with("throttle:10.0.0.1")

    @pytest.mark.asyncio
    async def test_expire_uses_expire_with_prefix(self):
        client = _redis_client()
        store = RedisCounterStore(client, key_prefix="rl:")

        await store.expire("10.0.0.1", 60)
        client.expire.assert_awaited_once_with("rl:10.0.0.1", 60)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RedisConnectionError("refused"), RedisTimeoutError("slow")])
    async def test_increment_failure_raises_store_error(self, error):
        client = _redis_client()
        client.incr.side_effect = error
        store = RedisCounterStore(client)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.increment("k")

        assert exc_info.value.code == "counter_store_unavailable"
        assert exc_info.value.details["operation"] == "incr"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_expire_failure_raises_store_error(self):
        client = _redis_client()
        client.expire.side_effect = RedisConnectionError("refused")
        store = RedisCounterStore(client)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.expire("k", 60)

        assert exc_info.value.details["operation"] == "expire"

    @pytest.mark.asyncio
    async def test_ping_reports_failure_without_raising(self):
        client = _redis_client()
        client.ping.side_effect = RedisConnectionError("refused")

        assert await RedisCounterStore(client).ping() is False

    @pytest.mark.asyncio
    async def test_close_closes_client(self):
        client = _redis_client()
        await RedisCounterStore(client).close()
        client.aclose.assert_awaited_once()


class TestCreateCounterStore:
    def test_memory_backend(self):
        store = create_counter_store(StoreSettings(backend="memory"))
        assert isinstance(store, InMemoryCounterStore)

    def test_redis_backend(self):
        store = create_counter_store(
            StoreSettings(backend="redis", redis_url="redis://localhost:6390/1", key_prefix="x:")
        )
        assert isinstance(store, RedisCounterStore)

    def test_unknown_backend(self):
        bogus = StoreSettings.model_construct(backend="memcached")

        with pytest.raises(ValidationAppError) as exc_info:
            create_counter_store(bogus)

        assert exc_info.value.code == "store_unknown_backend"
