# =============================================================================
# cms_core/storage/layer.py
# Composition Root for the Persistence Layer
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
import logging

from cms_core.config import AppConfig
from .connection_prober import BackendProber
from .dispatcher import HybridDispatcher, StorageMode
from .event_bus import EventBus
from .local_backend import LocalBackend
from .local_store import LocalStore
from .migration import MigrationCoordinator
from .object_storage import S3ObjectStorage
from .realtime_bridge import RealtimeBridge
from .remote_backend import RemoteBackend
from .supabase_client import SupabaseClientProvider

logger = logging.getLogger(__name__)


@dataclass
class PersistenceLayer:
    """Every collaborator, constructed once and passed down explicitly."""
    config: AppConfig
    event_bus: EventBus
    store: LocalStore
    local: LocalBackend
    provider: SupabaseClientProvider
    object_storage: Optional[S3ObjectStorage]
    remote: RemoteBackend
    prober: BackendProber
    dispatcher: HybridDispatcher
    migration: MigrationCoordinator

    async def initialize(self) -> None:
        """
        Probe the database and start realtime when it answers.

        Local defaults are seeded only when local storage serves requests.
        """
        if await self.prober.check_availability():
            await self.remote.initialize()
        if await self.dispatcher.current_mode() == StorageMode.LOCAL:
            await self.local.initialize()
        status = await self.dispatcher.get_connection_status()
        logger.info(f"Persistence layer ready in {status['mode']} mode")

    async def destroy(self) -> None:
        try:
            await self.remote.destroy()
        finally:
            await self.provider.close()
            self.event_bus.clear()
            self.store.close()


def build_persistence_layer(
    config: Optional[AppConfig] = None,
    *,
    supabase_client: Any = None,
    s3_client: Any = None,
    store: Optional[LocalStore] = None,
) -> PersistenceLayer:
    """
    Wire the persistence layer from configuration.

    Args:
        config: Configuration (read from the environment when None)
        supabase_client: Prepared async Supabase client (tests)
        s3_client: Prepared boto3 S3 client (tests)
        store: Prepared local store (tests)
    """
    config = config or AppConfig.from_env()
    event_bus = EventBus()

    store = store or LocalStore(config.local_db_path)
    local = LocalBackend(
        store,
        event_bus,
        write_delay=config.local_write_delay,
        media_dir=config.media_dir,
    )

    provider = SupabaseClientProvider(config.supabase, client=supabase_client)
    object_storage = None
    if config.has_storage_config or s3_client is not None:
        object_storage = S3ObjectStorage(config.object_storage, client=s3_client)

    remote = RemoteBackend(
        provider,
        event_bus,
        object_storage=object_storage,
        realtime=RealtimeBridge(event_bus),
    )
    prober = BackendProber(provider)

    return PersistenceLayer(
        config=config,
        event_bus=event_bus,
        store=store,
        local=local,
        provider=provider,
        object_storage=object_storage,
        remote=remote,
        prober=prober,
        dispatcher=HybridDispatcher(local, remote, prober, event_bus),
        migration=MigrationCoordinator(local, remote, event_bus),
    )
