# =============================================================================
# cms_core/storage/__init__.py
# Hybrid Persistence Layer for the Website CMS
# =============================================================================
"""
Hybrid Persistence Layer

Website data lives either in a local SQLite key/value store or in the
hosted Supabase database (media blobs in S3-compatible storage). The UI
never chooses: every call goes through the dispatcher.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                   HYBRID PERSISTENCE LAYER                       │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │            Data-Access Hooks (one per UI surface)         │  │
│   └──────────────────────────────────────────────────────────┘  │
│                 │                          ▲                     │
│                 ▼                          │                     │
│   ┌──────────────────────┐        ┌──────────────────┐          │
│   │   HybridDispatcher   │        │     EventBus     │          │
│   │ (force-local, probe) │        │ (data_updated..) │          │
│   └──────────────────────┘        └──────────────────┘          │
│        │             │                 ▲        ▲                │
│        ▼             ▼                 │        │                │
│ ┌────────────┐ ┌──────────────┐        │  ┌──────────────┐      │
│ │LocalBackend│ │RemoteBackend │────────┘  │RealtimeBridge│      │
│ │  (SQLite)  │ │(Supabase+S3) │◄─────────►│  (channels)  │      │
│ └────────────┘ └──────────────┘           └──────────────┘      │
│        │             ▲                                           │
│        └──────┬──────┘                                           │
│               │                                                  │
│   ┌──────────────────────┐                                      │
│   │ MigrationCoordinator │  (local -> database, once)           │
│   └──────────────────────┘                                      │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from cms_core.storage import build_persistence_layer

layer = build_persistence_layer()
await layer.initialize()

products = await layer.dispatcher.get_products()
status = await layer.dispatcher.get_connection_status()
"""

from cms_core.storage.event_bus import (
    EventBus,
    Events,
    ENTITY_EVENTS,
    data_event,
)

from cms_core.storage.local_store import LocalStore

from cms_core.storage.base import (
    StorageBackend,
    EXPORT_VERSION,
    parse_import_payload,
)

from cms_core.storage.local_backend import LocalBackend

from cms_core.storage.supabase_client import SupabaseClientProvider

from cms_core.storage.object_storage import (
    S3ObjectStorage,
    generate_object_key,
)

from cms_core.storage.realtime_bridge import RealtimeBridge

from cms_core.storage.remote_backend import RemoteBackend

from cms_core.storage.connection_prober import (
    BackendProber,
    ProbeStatus,
    ProbeState,
)

from cms_core.storage.dispatcher import (
    HybridDispatcher,
    StorageMode,
    select_backend,
)

from cms_core.storage.migration import (
    MigrationCoordinator,
    MigrationStatus,
    EntityMigrationStatus,
    MigrationResult,
)

from cms_core.storage.diagnostics import (
    find_storage_discrepancies,
    cleanup_orphaned_blobs,
)

from cms_core.storage.layer import (
    PersistenceLayer,
    build_persistence_layer,
)

__all__ = [
    # Events
    "EventBus",
    "Events",
    "ENTITY_EVENTS",
    "data_event",
    # Backends
    "LocalStore",
    "StorageBackend",
    "EXPORT_VERSION",
    "parse_import_payload",
    "LocalBackend",
    "SupabaseClientProvider",
    "S3ObjectStorage",
    "generate_object_key",
    "RealtimeBridge",
    "RemoteBackend",
    # Routing
    "BackendProber",
    "ProbeStatus",
    "ProbeState",
    "HybridDispatcher",
    "StorageMode",
    "select_backend",
    # Migration & diagnostics
    "MigrationCoordinator",
    "MigrationStatus",
    "EntityMigrationStatus",
    "MigrationResult",
    "find_storage_discrepancies",
    "cleanup_orphaned_blobs",
    # Composition
    "PersistenceLayer",
    "build_persistence_layer",
]
