"""
Pytest configuration and shared fixtures for all tests.
"""

import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import fakeredis
import pytest
from fastapi.testclient import TestClient

from src.common.singleton_meta import SingletonMeta
from src.infrastructure.cache import RedisCache
from src.infrastructure.config.read_config import ConfigReader, ConfigSchema
from src.services.registry import InMemoryEntryStore, PeerRegistry, RedisEntryStore
from src.services.rendezvous_service import create_app


class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def registry(clock):
    """Provide a fresh in-memory registry driven by the fake clock."""
    return PeerRegistry(store=InMemoryEntryStore(), clock=clock)


@pytest.fixture
def fake_redis():
    """Provide an isolated fakeredis client."""
    server = fakeredis.FakeServer()
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def redis_store(fake_redis):
    """Provide a Redis entry store backed by fakeredis."""
    return RedisEntryStore(RedisCache(fake_redis), key_prefix="test:peers")


@pytest.fixture
def mock_redis():
    """Patch redis.Redis so configured stores connect to fakeredis."""
    fake = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)

    with patch("redis.Redis", return_value=fake):
        yield fake


@pytest.fixture
def test_settings() -> ConfigSchema:
    """Provide an in-memory, no-sweep configuration."""
    return ConfigSchema(port=3000)


@pytest.fixture
def api_client(registry, test_settings):
    """Provide a TestClient around an app serving the ``registry`` fixture."""
    app = create_app(registry=registry, config=test_settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def temp_config_file():
    """Create a temporary config file for testing."""
    config_data = {
        "host": "127.0.0.1",
        "port": 4000,
        "peer_ttl_seconds": 30,
        "prune_on_list": True,
        "sweep_interval_seconds": 60,
        "registry_endpoint": "http://127.0.0.1:4000",
        "announce_interval_seconds": 10,
        "storage": {
            "backend": "memory",
            "host": "localhost",
            "port": 6379,
            "password": None,
        },
    }

    with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
        json.dump(config_data, f)
        temp_path = f.name

    old_config_path = os.environ.get("CONFIG_PATH")
    os.environ["CONFIG_PATH"] = temp_path

    yield temp_path

    os.unlink(temp_path)
    if old_config_path:
        os.environ["CONFIG_PATH"] = old_config_path
    else:
        os.environ.pop("CONFIG_PATH", None)


@pytest.fixture
def reset_singletons():
    """Reset singleton instances before and after each test."""
    SingletonMeta.reset_instance(ConfigReader)
    yield
    SingletonMeta.reset_instance(ConfigReader)


@pytest.fixture
def test_config(temp_config_file, reset_singletons) -> ConfigSchema:
    """Provide a configuration loaded from the temp config file."""
    return ConfigReader().config


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "performance: Performance tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "redis: Tests exercising the Redis backend")
