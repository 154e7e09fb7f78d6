"""Peer registry: session-keyed address entries with a lazily pruned index.

Entries expire ``ttl_seconds`` after their most recent registration. Expiry is
pull-based: nothing runs on a timer, an entry simply stops being served once
``now > expires_at``. The index of session ids is swept whenever a new session
registers, and optionally on ``list_peers`` or from a background task.

All public operations hold one lock over the store and the index, so a
registration is atomic and a listing sees either the state before or after
any concurrent registration, never a mix.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from src.infrastructure.config import ConfigSchema
from src.infrastructure.logging.logging_config import get_logger
from src.services.registry.entry_store import (
    EntryStore,
    InMemoryEntryStore,
    PeerEntry,
    create_entry_store,
)
from src.shared.resilience.exceptions import ValidationError

logger = get_logger("peer_registry")

DEFAULT_TTL_SECONDS = 25.0

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class PeerRegistry:
    """Registry of live peer addresses keyed by session id."""

    def __init__(
        self,
        store: Optional[EntryStore] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
        prune_on_list: bool = False,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store if store is not None else InMemoryEntryStore()
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utc_now
        self.prune_on_list = prune_on_list
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ConfigSchema, clock: Optional[Clock] = None):
        """Build a registry with the store and TTL named in the config."""
        return cls(
            store=create_entry_store(config.storage),
            ttl_seconds=config.peer_ttl_seconds,
            clock=clock,
            prune_on_list=config.prune_on_list,
        )

    @property
    def ttl_seconds(self) -> float:
        return self.ttl.total_seconds()

    def register(self, session_id: str, address: str) -> None:
        """Insert or refresh the entry for ``session_id``.

        Re-registering resets the deadline and may change the address; it
        never adds a second index slot for the same session.

        Raises:
            ValidationError: If either argument is missing or empty. Nothing
                is mutated in that case.
            StorageError: If the backing store fails.
        """
        if not isinstance(session_id, str) or not isinstance(address, str):
            raise ValidationError()
        if not session_id or not address:
            raise ValidationError()

        with self._lock:
            now = self.clock()
            entry = PeerEntry(
                session_id=session_id,
                address=address,
                registered_at=now,
                expires_at=now + self.ttl,
            )
            self.store.put_entry(entry, self.ttl_seconds)

            index = self.store.load_index()
            if session_id not in index:
                index, removed = self._prune(index, now)
                index.append(session_id)
                self.store.save_index(index)
                logger.info(
                    f"Registered new session {session_id} at {address} "
                    f"({len(index)} indexed, {removed} swept)"
                )
            else:
                logger.debug(f"Refreshed session {session_id} at {address}")

    def list_peers(self) -> List[str]:
        """Addresses of all live entries, in index order.

        Raises:
            StorageError: If the backing store fails.
        """
        with self._lock:
            now = self.clock()
            index = self.store.load_index()
            addresses = []
            stale = False
            for session_id in index:
                entry = self.store.get_entry(session_id)
                if entry is None or entry.is_expired(now):
                    stale = True
                    continue
                addresses.append(entry.address)

            if stale and self.prune_on_list:
                pruned, removed = self._prune(index, now)
                self.store.save_index(pruned)
                logger.debug(f"Pruned {removed} stale sessions while listing")

        return addresses

    def sweep(self) -> int:
        """Remove expired and missing sessions from the index.

        Returns:
            int: Number of session ids removed.
        """
        with self._lock:
            index = self.store.load_index()
            pruned, removed = self._prune(index, self.clock())
            if removed:
                self.store.save_index(pruned)
                logger.info(f"Swept {removed} expired sessions")
        return removed

    def get_entry(self, session_id: str) -> Optional[PeerEntry]:
        """Return the live entry for ``session_id`` or None."""
        with self._lock:
            entry = self.store.get_entry(session_id)
            if entry is None or entry.is_expired(self.clock()):
                return None
            return entry

    def stats(self) -> Dict[str, Any]:
        """Index size, live count, TTL and backend name."""
        with self._lock:
            now = self.clock()
            index = self.store.load_index()
            live = 0
            for session_id in index:
                entry = self.store.get_entry(session_id)
                if entry is not None and not entry.is_expired(now):
                    live += 1
        return {
            "indexed_sessions": len(index),
            "live_sessions": live,
            "ttl_seconds": self.ttl_seconds,
            "storage_backend": self.store.backend,
        }

    def _prune(self, index: List[str], now: datetime):
        """Split off ids whose entry is gone or expired. Caller holds the lock."""
        kept: List[str] = []
        removed = 0
        for session_id in index:
            entry = self.store.get_entry(session_id)
            if entry is None:
                removed += 1
                continue
            if entry.is_expired(now):
                self.store.delete_entry(session_id)
                removed += 1
                continue
            kept.append(session_id)
        return kept, removed
