"""Registry service package.

This package contains the peer registry implementation:
- peer_registry.py: TTL-based registry state machine
- entry_store.py: in-memory and Redis backing stores
- registry_client.py: HTTP client and periodic announcer for peers
"""

from src.services.registry.entry_store import (
    EntryStore,
    InMemoryEntryStore,
    PeerEntry,
    RedisEntryStore,
    create_entry_store,
)
from src.services.registry.peer_registry import DEFAULT_TTL_SECONDS, PeerRegistry
from src.services.registry.registry_client import (
    PeerAnnouncer,
    PeerRegistryClient,
    generate_session_id,
)

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "EntryStore",
    "InMemoryEntryStore",
    "PeerAnnouncer",
    "PeerEntry",
    "PeerRegistry",
    "PeerRegistryClient",
    "RedisEntryStore",
    "create_entry_store",
    "generate_session_id",
]
