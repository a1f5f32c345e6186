# =============================================================================
# cms_core/storage/dispatcher.py
# Hybrid Dispatcher - routes every call to the local or remote backend
# =============================================================================
"""
HybridDispatcher - single entry point the UI uses for data access.

Every call resolves its backend first:

    force-local flag set   -> local  (probe not consulted)
    probe says available   -> remote
    otherwise              -> local

then delegates the identical call and returns or raises whatever the
backend does. Switching modes never copies data; that is the migration
coordinator's job.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import logging

from cms_core.models import UploadFile
from .base import StorageBackend
from .connection_prober import BackendProber
from .event_bus import EventBus, Events, data_event
from .local_backend import LocalBackend
from .remote_backend import RemoteBackend

logger = logging.getLogger(__name__)


class StorageMode(Enum):
    LOCAL = "localStorage"
    DATABASE = "database"


def select_backend(
    force_local: bool,
    available: bool,
    local: StorageBackend,
    remote: StorageBackend,
) -> StorageBackend:
    """Pure routing rule shared by every dispatcher call."""
    if force_local or not available:
        return local
    return remote


class HybridDispatcher:
    """
    Routes CRUD calls between LocalBackend and RemoteBackend.

    Usage:
        dispatcher = HybridDispatcher(local, remote, prober, bus)
        products = await dispatcher.get_products()
        status = await dispatcher.get_connection_status()
    """

    def __init__(
        self,
        local: LocalBackend,
        remote: RemoteBackend,
        prober: BackendProber,
        event_bus: EventBus,
    ):
        self.local = local
        self.remote = remote
        self.prober = prober
        self.event_bus = event_bus

    # =========================================================================
    # ROUTING
    # =========================================================================

    async def _backend(self) -> StorageBackend:
        force_local = self.local.is_force_local()
        available = False if force_local else await self.prober.check_availability()
        return select_backend(force_local, available, self.local, self.remote)

    async def current_mode(self) -> StorageMode:
        backend = await self._backend()
        return StorageMode.DATABASE if backend is self.remote else StorageMode.LOCAL

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    async def get_products(self) -> List[Dict[str, Any]]:
        return await (await self._backend()).get_products()

    async def add_product(self, product: Dict[str, Any]) -> Dict[str, Any]:
        return await (await self._backend()).add_product(product)

    async def update_product(self, product_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await (await self._backend()).update_product(product_id, updates)

    async def delete_product(self, product_id: int) -> None:
        return await (await self._backend()).delete_product(product_id)

    # =========================================================================
    # CONTENT & SETTINGS
    # =========================================================================

    async def get_content(self) -> Dict[str, Any]:
        return await (await self._backend()).get_content()

    async def save_content(self, content: Dict[str, Any]) -> None:
        return await (await self._backend()).save_content(content)

    async def get_settings(self) -> Dict[str, Any]:
        return await (await self._backend()).get_settings()

    async def save_settings(self, settings: Dict[str, Any]) -> None:
        return await (await self._backend()).save_settings(settings)

    # =========================================================================
    # MEDIA
    # =========================================================================

    async def get_media(self) -> List[Dict[str, Any]]:
        return await (await self._backend()).get_media()

    async def add_media_item(
        self,
        file: UploadFile,
        category: str = "general",
        allow_video: bool = False,
    ) -> Dict[str, Any]:
        return await (await self._backend()).add_media_item(file, category, allow_video=allow_video)

    async def delete_media_item(self, media_id: str) -> None:
        return await (await self._backend()).delete_media_item(media_id)

    # =========================================================================
    # TESTIMONIALS
    # =========================================================================

    async def get_testimonials(self) -> List[Dict[str, Any]]:
        return await (await self._backend()).get_testimonials()

    async def add_testimonial(self, testimonial: Dict[str, Any]) -> Dict[str, Any]:
        return await (await self._backend()).add_testimonial(testimonial)

    async def update_testimonial(self, testimonial_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await (await self._backend()).update_testimonial(testimonial_id, updates)

    async def delete_testimonial(self, testimonial_id: int) -> None:
        return await (await self._backend()).delete_testimonial(testimonial_id)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def get_categories(self) -> List[Dict[str, Any]]:
        return await (await self._backend()).get_categories()

    async def add_category(self, category: Dict[str, Any]) -> Dict[str, Any]:
        return await (await self._backend()).add_category(category)

    async def update_category(self, category_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await (await self._backend()).update_category(category_id, updates)

    async def delete_category(self, category_id: int) -> None:
        return await (await self._backend()).delete_category(category_id)

    async def reorder_categories(self, category_ids: List[int]) -> None:
        return await (await self._backend()).reorder_categories(category_ids)

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_data(self) -> Dict[str, Any]:
        return await (await self._backend()).export_data()

    async def import_data(self, data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, int]:
        return await (await self._backend()).import_data(data)

    # =========================================================================
    # STATUS & MODE CONTROL
    # =========================================================================

    async def get_connection_status(self) -> Dict[str, Any]:
        """Snapshot for display: mode, connectivity, configuration, override."""
        force_local = self.local.is_force_local()
        available = await self.prober.check_availability()
        mode = StorageMode.LOCAL if force_local or not available else StorageMode.DATABASE
        return {
            "mode": mode.value,
            "connected": available,
            "has_environment_vars": self.prober.has_configuration,
            "force_local": force_local,
        }

    async def reconnect_to_database(self) -> bool:
        """Re-probe; on success initialize the remote backend and tell every hook to reload."""
        connected = await self.prober.force_recheck()
        if connected:
            await self.remote.initialize()
            self.event_bus.emit(
                Events.DATA_UPDATED,
                data_event("reconnection", "reconnection", source="dispatcher"),
            )
            self.event_bus.emit(Events.RECONNECTED, {"mode": StorageMode.DATABASE.value})
            logger.info("Reconnected to hosted database")
        return connected

    def set_force_local(self, enabled: bool) -> None:
        """Persist the override flag and announce the mode switch."""
        self.local.set_force_local(enabled)
        mode = StorageMode.LOCAL if enabled else StorageMode.DATABASE
        self.event_bus.emit(
            Events.DATA_UPDATED,
            data_event("mode_switch", "mode_switch", data=mode.value, source="dispatcher"),
        )
        logger.info(f"Force-local storage {'enabled' if enabled else 'disabled'}")
