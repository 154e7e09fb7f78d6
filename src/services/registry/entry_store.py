"""Backing stores for peer entries and the active-session index.

Stores are plain containers: they do no locking and make no liveness
decisions. ``PeerRegistry`` serializes access and decides what is expired.
"""

import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from src.infrastructure.cache import RedisCache
from src.infrastructure.config import StorageConfigSchema
from src.infrastructure.logging.logging_config import get_logger
from src.shared.resilience.exceptions import StorageError

logger = get_logger("entry_store")


class PeerEntry(BaseModel):
    """A single registrant's address record with its own expiry deadline."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    address: str
    registered_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """An entry is still live at exactly ``expires_at``."""
        return now > self.expires_at


class EntryStore(ABC):
    """Storage interface for entries keyed by session id plus the index."""

    backend: str = "abstract"

    @abstractmethod
    def get_entry(self, session_id: str) -> Optional[PeerEntry]:
        """Return the stored entry, expired or not, or None."""

    @abstractmethod
    def put_entry(self, entry: PeerEntry, ttl_seconds: float) -> None:
        """Insert or overwrite the entry for ``entry.session_id``."""

    @abstractmethod
    def delete_entry(self, session_id: str) -> None:
        """Remove the entry if present."""

    @abstractmethod
    def load_index(self) -> List[str]:
        """Return the ordered list of indexed session ids."""

    @abstractmethod
    def save_index(self, session_ids: List[str]) -> None:
        """Replace the index."""


class InMemoryEntryStore(EntryStore):
    """Dict-backed store living inside the service process."""

    backend = "memory"

    def __init__(self):
        self._entries: Dict[str, PeerEntry] = {}
        self._index: List[str] = []

    def get_entry(self, session_id: str) -> Optional[PeerEntry]:
        return self._entries.get(session_id)

    def put_entry(self, entry: PeerEntry, ttl_seconds: float) -> None:
        # Expiry is judged from entry.expires_at, ttl_seconds is only a
        # physical-reclaim hint for stores that support it
        self._entries[entry.session_id] = entry

    def delete_entry(self, session_id: str) -> None:
        self._entries.pop(session_id, None)

    def load_index(self) -> List[str]:
        return list(self._index)

    def save_index(self, session_ids: List[str]) -> None:
        self._index = list(session_ids)


class RedisEntryStore(EntryStore):
    """Store entries as JSON documents in Redis.

    Entry keys carry a Redis expiry so abandoned sessions are reclaimed even
    if no sweep runs. The index key never expires; stale ids are pruned by
    the registry sweep.
    """

    backend = "redis"

    def __init__(self, cache: RedisCache, key_prefix: str = "peer:registry"):
        self.cache = cache
        self.key_prefix = key_prefix

    def _entry_key(self, session_id: str) -> str:
        """Generate Redis key for a session entry"""
        return f"{self.key_prefix}:entry:{session_id}"

    def _index_key(self) -> str:
        """Generate Redis key for the session index"""
        return f"{self.key_prefix}:index"

    def get_entry(self, session_id: str) -> Optional[PeerEntry]:
        key = self._entry_key(session_id)
        data = self.cache.get_json(key)
        if data is None:
            return None
        try:
            return PeerEntry.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Corrupt peer entry at {key}: {e}")
            raise StorageError(
                f"Corrupt peer entry at {key}", context={"key": key}, cause=e
            ) from e

    def put_entry(self, entry: PeerEntry, ttl_seconds: float) -> None:
        self.cache.set_json(
            self._entry_key(entry.session_id),
            entry.model_dump(mode="json"),
            ttl=max(1, math.ceil(ttl_seconds)),
        )

    def delete_entry(self, session_id: str) -> None:
        self.cache.delete(self._entry_key(session_id))

    def load_index(self) -> List[str]:
        key = self._index_key()
        data = self.cache.get_json(key)
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
            logger.error(f"Corrupt session index at {key}: {data!r}")
            raise StorageError(f"Corrupt session index at {key}", context={"key": key})
        return data

    def save_index(self, session_ids: List[str]) -> None:
        self.cache.set_json(self._index_key(), list(session_ids))


def create_entry_store(storage_config: StorageConfigSchema) -> EntryStore:
    """Create the entry store selected by configuration."""
    if storage_config.backend == "redis":
        cache = RedisCache.from_config(storage_config)
        if not cache.ping():
            logger.warning(
                "Redis store is unreachable, registry calls will fail until it is up"
            )
        return RedisEntryStore(cache, key_prefix=storage_config.key_prefix)

    logger.info("Using in-memory entry store")
    return InMemoryEntryStore()
