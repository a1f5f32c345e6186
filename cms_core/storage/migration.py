# =============================================================================
# cms_core/storage/migration.py
# One-Way Migration from Local Storage to the Hosted Database
# =============================================================================
"""
MigrationCoordinator - copies local website data into the hosted database.

The guard is deliberately coarse: migration is offered only while local
data exists and the database holds nothing at all. Records are re-created
through the remote backend's own add/save operations, so products,
categories and testimonials receive new ids. Media files are not copied.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
import json
import logging

import pandas as pd

from cms_core.errors import MigrationError
from cms_core.logging import LogContext
from .event_bus import EventBus, Events, data_event
from .local_backend import LocalBackend, DEFAULTS_DIR
from .remote_backend import RemoteBackend

logger = logging.getLogger(__name__)

ENTITIES = ("products", "categories", "testimonials", "content", "settings", "media")


@dataclass
class EntityMigrationStatus:
    entity: str
    local_count: int = 0
    remote_count: int = 0

    @property
    def has_local(self) -> bool:
        return self.local_count > 0

    @property
    def has_remote(self) -> bool:
        return self.remote_count > 0


@dataclass
class MigrationStatus:
    entities: Dict[str, EntityMigrationStatus] = field(default_factory=dict)

    @property
    def has_local_data(self) -> bool:
        return any(s.has_local for s in self.entities.values())

    @property
    def has_remote_data(self) -> bool:
        return any(s.has_remote for s in self.entities.values())

    @property
    def can_migrate(self) -> bool:
        return self.has_local_data and not self.has_remote_data

    def to_dataframe(self) -> pd.DataFrame:
        """One row per entity for display."""
        return pd.DataFrame([
            {
                "entity": s.entity,
                "local": s.local_count,
                "database": s.remote_count,
                "has_local": s.has_local,
                "has_database": s.has_remote,
            }
            for s in self.entities.values()
        ])


@dataclass
class MigrationResult:
    migrated: Dict[str, int] = field(default_factory=dict)
    media_skipped: int = 0
    cleared_local: bool = False
    elapsed: float = 0.0

    @property
    def total(self) -> int:
        return sum(self.migrated.values())


class MigrationCoordinator:
    """
    Reads both backends, writes only to the remote one.

    Usage:
        coordinator = MigrationCoordinator(local, remote, bus)
        status = await coordinator.check_migration_status()
        if status.can_migrate:
            await coordinator.migrate_from_local_storage(confirm_clear=lambda r: True)
    """

    def __init__(self, local: LocalBackend, remote: RemoteBackend, event_bus: EventBus):
        self.local = local
        self.remote = remote
        self.event_bus = event_bus

    # =========================================================================
    # STATUS
    # =========================================================================

    def _local_counts(self) -> Dict[str, int]:
        products = self.local.read_raw("products") or []
        categories = self.local.read_raw("categories") or []
        media = self.local.read_raw("media") or []
        content = self.local.read_raw("content") or {}
        settings = self.local.read_raw("settings") or {}
        return {
            "products": len(products),
            "categories": len(categories),
            "testimonials": len(content.get("testimonials") or []),
            "content": sum(1 for k, v in content.items() if k != "testimonials" and v),
            "settings": sum(1 for v in settings.values() if v),
            "media": len(media),
        }

    async def check_migration_status(self) -> MigrationStatus:
        """Compare local and remote presence without changing either side."""
        local_counts = self._local_counts()
        status = MigrationStatus()
        for entity in ENTITIES:
            status.entities[entity] = EntityMigrationStatus(
                entity=entity,
                local_count=local_counts[entity],
                remote_count=await self.remote.count_rows(entity),
            )
        logger.info(
            f"Migration status: local={status.has_local_data} "
            f"database={status.has_remote_data} can_migrate={status.can_migrate}"
        )
        return status

    # =========================================================================
    # MIGRATION
    # =========================================================================

    async def migrate_from_local_storage(
        self,
        confirm_clear: Optional[Callable[[MigrationResult], bool]] = None,
        force: bool = False,
    ) -> MigrationResult:
        """
        Copy every local record into the hosted database.

        Args:
            confirm_clear: Called after success; a truthy answer removes local data
            force: Skip the can_migrate guard

        Raises:
            MigrationError: guard refused, or a write failed part-way
        """
        if not force:
            status = await self.check_migration_status()
            if not status.can_migrate:
                reason = "no local data" if not status.has_local_data else "database already has data"
                raise MigrationError(f"Migration not allowed: {reason}")

        result = MigrationResult()
        current = None

        try:
            with LogContext(logger, "Migrating local data to database") as timer:
                for category in self.local.read_raw("categories") or []:
                    current = "categories"
                    await self.remote.add_category(_strip_identity(category))
                    result.migrated["categories"] = result.migrated.get("categories", 0) + 1

                for product in self.local.read_raw("products") or []:
                    current = "products"
                    await self.remote.add_product(_strip_identity(product))
                    result.migrated["products"] = result.migrated.get("products", 0) + 1

                content = self.local.read_raw("content")
                if content:
                    current = "content"
                    sections = {k: v for k, v in content.items() if k != "testimonials"}
                    if sections:
                        await self.remote.save_content(sections)
                        result.migrated["content"] = len(sections)

                    for testimonial in content.get("testimonials") or []:
                        current = "testimonials"
                        await self.remote.add_testimonial(_strip_identity(testimonial))
                        result.migrated["testimonials"] = result.migrated.get("testimonials", 0) + 1

                settings = self.local.read_raw("settings")
                if settings:
                    current = "settings"
                    await self.remote.save_settings(settings)
                    result.migrated["settings"] = len(settings)

                result.media_skipped = len(self.local.read_raw("media") or [])
                if result.media_skipped:
                    logger.warning(
                        f"Skipped {result.media_skipped} media items; files must be re-uploaded"
                    )
            result.elapsed = timer.elapsed
        except Exception as e:
            raise MigrationError(
                f"Migration failed while copying {current}: {e}",
                entity=current,
                migrated=result.migrated,
            ) from e

        self.event_bus.emit(
            Events.DATA_UPDATED,
            data_event("reconnection", "reconnection", data=result.migrated, source="migration"),
        )
        self.event_bus.emit(Events.RECONNECTED, {"mode": "database", "source": "migration"})

        if confirm_clear is not None and confirm_clear(result):
            self.local.clear_all()
            result.cleared_local = True

        return result

    async def seed_database_defaults(self) -> Dict[str, int]:
        """
        Fill an empty database with the bundled default data.

        Returns an empty dict when the database already has products.
        """
        if await self.remote.count_rows("products") > 0:
            logger.info("Database already initialized")
            return {}

        document = {}
        for entity in ("products", "content", "settings", "categories"):
            path = DEFAULTS_DIR / f"{entity}.json"
            document[entity] = json.loads(path.read_text(encoding="utf-8"))
        return await self.remote.import_data(document)


def _strip_identity(record: dict) -> dict:
    return {k: v for k, v in record.items() if k not in ("id", "created_at", "updated_at")}
