"""
Unit tests for the in-memory and Redis entry stores.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.infrastructure.cache import RedisCache
from src.infrastructure.config import StorageConfigSchema
from src.services.registry import (
    InMemoryEntryStore,
    PeerEntry,
    PeerRegistry,
    RedisEntryStore,
    create_entry_store,
)
from src.shared.resilience.exceptions import StorageError

T0 = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_entry(session_id="s1", address="10.0.0.1:4000", ttl=25):
    return PeerEntry(
        session_id=session_id,
        address=address,
        registered_at=T0,
        expires_at=T0 + timedelta(seconds=ttl),
    )


@pytest.mark.unit
class TestPeerEntry:
    """Test PeerEntry expiry semantics."""

    def test_expiry_is_strict(self):
        """An entry expires only once now is past its deadline."""
        entry = make_entry()

        assert not entry.is_expired(T0 + timedelta(seconds=24))
        assert not entry.is_expired(T0 + timedelta(seconds=25))
        assert entry.is_expired(T0 + timedelta(seconds=25, microseconds=1))

    def test_entry_is_immutable(self):
        """Entries are frozen so readers never see a half-updated record."""
        entry = make_entry()

        with pytest.raises(Exception):
            entry.address = "elsewhere"


@pytest.mark.unit
class TestInMemoryEntryStore:
    """Test InMemoryEntryStore."""

    def test_put_get_delete(self):
        """Entries can be stored, read back and deleted."""
        store = InMemoryEntryStore()
        entry = make_entry()

        store.put_entry(entry, 25)
        assert store.get_entry("s1") == entry

        store.delete_entry("s1")
        assert store.get_entry("s1") is None
        store.delete_entry("s1")

    def test_index_is_copied(self):
        """Mutating a loaded index does not change the stored one."""
        store = InMemoryEntryStore()
        store.save_index(["a", "b"])

        loaded = store.load_index()
        loaded.append("c")

        assert store.load_index() == ["a", "b"]


@pytest.mark.unit
@pytest.mark.redis
class TestRedisEntryStore:
    """Test RedisEntryStore against fakeredis."""

    def test_round_trip_entry(self, redis_store, fake_redis):
        """Entries are stored as JSON under the prefixed key with an expiry."""
        entry = make_entry()

        redis_store.put_entry(entry, 25)

        assert redis_store.get_entry("s1") == entry
        assert fake_redis.exists("test:peers:entry:s1")
        assert 0 < fake_redis.ttl("test:peers:entry:s1") <= 25

    def test_fractional_ttl_rounds_up(self, redis_store, fake_redis):
        """Redis expiry never undercuts the logical TTL."""
        redis_store.put_entry(make_entry(), 0.2)

        assert fake_redis.ttl("test:peers:entry:s1") == 1

    def test_index_round_trip(self, redis_store, fake_redis):
        """The index is a JSON list without an expiry."""
        assert redis_store.load_index() == []

        redis_store.save_index(["s1", "s2"])

        assert redis_store.load_index() == ["s1", "s2"]
        assert fake_redis.ttl("test:peers:index") == -1

    def test_delete_entry(self, redis_store):
        """Deleted entries are gone."""
        redis_store.put_entry(make_entry(), 25)
        redis_store.delete_entry("s1")

        assert redis_store.get_entry("s1") is None

    def test_corrupt_entry_raises(self, redis_store, fake_redis):
        """Undecodable entries surface as StorageError."""
        fake_redis.set("test:peers:entry:s1", "{not json")

        with pytest.raises(StorageError, match="Corrupt"):
            redis_store.get_entry("s1")

    def test_wrong_shape_entry_raises(self, redis_store, fake_redis):
        """JSON that is not a peer entry surfaces as StorageError."""
        fake_redis.set("test:peers:entry:s1", '{"address": "x"}')

        with pytest.raises(StorageError, match="Corrupt peer entry"):
            redis_store.get_entry("s1")

    def test_corrupt_index_raises(self, redis_store, fake_redis):
        """An index that is not a list of strings surfaces as StorageError."""
        fake_redis.set("test:peers:index", '{"s1": true}')

        with pytest.raises(StorageError, match="Corrupt session index"):
            redis_store.load_index()

    def test_connection_failure_raises(self):
        """Redis connection errors surface as StorageError."""
        client = Mock()
        client.get.side_effect = RedisConnectionError("Connection refused")
        store = RedisEntryStore(RedisCache(client))

        with pytest.raises(StorageError, match="Connection refused"):
            store.load_index()

    def test_registry_over_redis(self, redis_store, clock):
        """The registry behaves the same over the Redis store."""
        registry = PeerRegistry(store=redis_store, clock=clock)
        registry.register("s1", "a1")
        registry.register("s2", "a2")
        registry.register("s1", "a1b")

        assert registry.list_peers() == ["a1b", "a2"]

        clock.advance(30)
        registry.register("s3", "a3")

        assert registry.list_peers() == ["a3"]
        assert redis_store.load_index() == ["s3"]
        assert redis_store.get_entry("s1") is None


@pytest.mark.unit
class TestCreateEntryStore:
    """Test backend selection."""

    def test_memory_backend(self):
        """The default backend is in-memory."""
        store = create_entry_store(StorageConfigSchema())

        assert isinstance(store, InMemoryEntryStore)
        assert store.backend == "memory"

    @pytest.mark.redis
    def test_redis_backend(self, mock_redis):
        """The redis backend wraps a configured client."""
        store = create_entry_store(
            StorageConfigSchema(backend="redis", key_prefix="svc")
        )

        assert isinstance(store, RedisEntryStore)
        assert store.backend == "redis"
        assert store.key_prefix == "svc"
        assert store.cache.redis_client is mock_redis
