"""Tests for the key/value storage backends."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shared.storage import (
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    StoreBackend,
    StoreUnavailableError,
    create_store,
)


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def memory_store(monotonic):
    return InMemoryKeyValueStore(clock=monotonic)


class TestInMemoryKeyValueStore:
    async def test_set_and_get(self, memory_store):
        await memory_store.set("room:A", "payload")
        assert await memory_store.get("room:A") == "payload"

    async def test_missing_key(self, memory_store):
        assert await memory_store.get("room:missing") is None

    async def test_value_expires_after_ttl(self, memory_store, monotonic):
        await memory_store.set("room:A", "payload", ttl_seconds=10)

        monotonic.now += 9
        assert await memory_store.get("room:A") == "payload"
        monotonic.now += 1
        assert await memory_store.get("room:A") is None

    async def test_without_ttl_never_expires(self, memory_store, monotonic):
        await memory_store.set("room:A", "payload")
        monotonic.now += 10**9
        assert await memory_store.get("room:A") == "payload"

    async def test_set_refreshes_ttl(self, memory_store, monotonic):
        await memory_store.set("room:A", "v1", ttl_seconds=10)
        monotonic.now += 8
        await memory_store.set("room:A", "v2", ttl_seconds=10)
        monotonic.now += 8
        assert await memory_store.get("room:A") == "v2"

    async def test_expire_updates_ttl(self, memory_store, monotonic):
        await memory_store.set("room:A", "payload")
        await memory_store.expire("room:A", 5)
        monotonic.now += 5
        assert await memory_store.get("room:A") is None

    async def test_expire_missing_key_is_noop(self, memory_store):
        await memory_store.expire("room:missing", 5)
        assert await memory_store.get("room:missing") is None

    async def test_keys_by_prefix_skips_expired(self, memory_store, monotonic):
        await memory_store.set("room:A", "a")
        await memory_store.set("room:B", "b", ttl_seconds=1)
        await memory_store.set("player:1", "p")
        monotonic.now += 2

        assert await memory_store.keys("room:") == ["room:A"]

    async def test_delete(self, memory_store):
        await memory_store.set("room:A", "a")
        await memory_store.delete("room:A")
        await memory_store.delete("room:A")
        assert await memory_store.get("room:A") is None

    async def test_close_drops_values(self, memory_store):
        await memory_store.set("room:A", "a")
        await memory_store.close()
        assert await memory_store.keys("") == []


def _redis_client(**methods):
    client = MagicMock()
    for name, mock in methods.items():
        setattr(client, name, mock)
    return client


class TestRedisKeyValueStore:
    async def test_set_passes_ttl(self):
        client = _redis_client(set=AsyncMock())
        store = RedisKeyValueStore(client)

        await store.set("room:A", "payload", ttl_seconds=60)

        client.set.assert_awaited_once_with("room:A", "payload", ex=60)

    async def test_get(self):
        client = _redis_client(get=AsyncMock(return_value="payload"))
        assert await RedisKeyValueStore(client).get("room:A") == "payload"

    async def test_keys_scans_prefix(self):
        async def scan_iter(match):
            assert match == "room:*"
            for key in ["room:A", "room:B"]:
                yield key

        client = _redis_client(scan_iter=scan_iter)
        assert await RedisKeyValueStore(client).keys("room:") == ["room:A", "room:B"]

    @pytest.mark.parametrize(
        ("method", "args"),
        [
            ("get", ("room:A",)),
            ("set", ("room:A", "payload")),
            ("delete", ("room:A",)),
            ("expire", ("room:A", 10)),
        ],
    )
    async def test_client_errors_become_store_unavailable(self, method, args):
        client = _redis_client(**{method: AsyncMock(side_effect=RedisConnectionError("refused"))})
        store = RedisKeyValueStore(client)

        with pytest.raises(StoreUnavailableError, match="refused"):
            await getattr(store, method)(*args)

    async def test_os_errors_become_store_unavailable(self):
        client = _redis_client(get=AsyncMock(side_effect=OSError("network down")))
        with pytest.raises(StoreUnavailableError):
            await RedisKeyValueStore(client).get("room:A")

    async def test_scan_error_becomes_store_unavailable(self):
        async def scan_iter(match):  # noqa: ARG001
            raise RedisConnectionError("refused")
            yield  # pragma: no cover

        client = _redis_client(scan_iter=scan_iter)
        with pytest.raises(StoreUnavailableError):
            await RedisKeyValueStore(client).keys("room:")

    async def test_close(self):
        client = _redis_client(aclose=AsyncMock())
        await RedisKeyValueStore(client).close()
        client.aclose.assert_awaited_once()


class TestCreateStore:
    def test_memory_backend(self):
        assert isinstance(create_store(StoreBackend.MEMORY), InMemoryKeyValueStore)

    def test_redis_backend(self):
        store = create_store(StoreBackend.REDIS, "redis://localhost:6379/0")
        assert isinstance(store, RedisKeyValueStore)

    def test_redis_backend_requires_url(self):
        with pytest.raises(ValueError, match="redis_url"):
            create_store(StoreBackend.REDIS)
