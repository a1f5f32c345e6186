# =============================================================================
# cms_core/storage/base.py
# Shared Backend Contract (Local + Remote)
# =============================================================================
"""
StorageBackend - the CRUD + event contract both backends implement.

The dispatcher treats backends interchangeably, so every coroutine here
has the same meaning on local storage and on the hosted database. Export
and import are written once against that contract.
"""

from __future__ import annotations
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from cms_core.errors import DataValidationError
from cms_core.logging import get_logger, LogContext
from cms_core.models import UploadFile
from .event_bus import EventBus, Events, ENTITY_EVENTS, data_event

EXPORT_VERSION = "2.0"
EXPORT_KEYS = ("products", "content", "settings", "media", "categories")


def parse_import_payload(data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """Accept an export document as text or dict and check its shape."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise DataValidationError(
                f"Import file is not valid JSON: {e}",
                entity="import",
            ) from e

    if not isinstance(data, dict) or not any(key in data for key in EXPORT_KEYS):
        raise DataValidationError(
            "Import file must contain at least one of: " + ", ".join(EXPORT_KEYS),
            entity="import",
        )
    return data


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Subclasses set ``name`` ("local" or "remote") and implement every
    entity coroutine. Mutations emit a typed event plus DATA_UPDATED.
    ``embeds_testimonials`` is False where testimonials live outside the
    content document.
    """

    name = "backend"
    embeds_testimonials = True

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self.logger = get_logger(self.__class__.__name__)

    def _emit(
        self,
        entity: str,
        action: str,
        data: Any = None,
        id: Any = None,
    ) -> None:
        payload = data_event(entity, action, data=data, id=id, source=self.name)
        typed = ENTITY_EVENTS.get(entity)
        if typed:
            self.event_bus.emit(typed, payload)
        self.event_bus.emit(Events.DATA_UPDATED, payload)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @abstractmethod
    async def initialize(self) -> None: ...

    async def destroy(self) -> None:
        """Release resources; backends without any keep the default."""

    # =========================================================================
    # ENTITY OPERATIONS
    # =========================================================================

    @abstractmethod
    async def get_products(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def add_product(self, product: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def update_product(self, product_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def delete_product(self, product_id: int) -> None: ...

    @abstractmethod
    async def get_content(self) -> Dict[str, Any]: ...

    @abstractmethod
    async def save_content(self, content: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def get_settings(self) -> Dict[str, Any]: ...

    @abstractmethod
    async def save_settings(self, settings: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def get_media(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def add_media_item(
        self,
        file: UploadFile,
        category: str = "general",
        allow_video: bool = False,
    ) -> Dict[str, Any]: ...

    @abstractmethod
    async def delete_media_item(self, media_id: str) -> None: ...

    @abstractmethod
    async def get_testimonials(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def add_testimonial(self, testimonial: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def update_testimonial(self, testimonial_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def delete_testimonial(self, testimonial_id: int) -> None: ...

    @abstractmethod
    async def get_categories(self) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def add_category(self, category: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def update_category(self, category_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def delete_category(self, category_id: int) -> None: ...

    @abstractmethod
    async def reorder_categories(self, category_ids: List[int]) -> None: ...

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_data(self) -> Dict[str, Any]:
        """Snapshot every collection in the export document format."""
        return {
            "products": await self.get_products(),
            "content": await self.get_content(),
            "settings": await self.get_settings(),
            "media": await self.get_media(),
            "categories": await self.get_categories(),
            "exportDate": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "version": EXPORT_VERSION,
        }

    async def import_data(self, data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, int]:
        """
        Replay an export document through the normal write operations.

        Products and categories are re-created with new identities; content
        (testimonials included) and settings are saved whole. Media entries
        carry no binary payload and are skipped.

        Returns:
            Count of records written (or skipped) per collection
        """
        document = parse_import_payload(data)
        summary = {"products": 0, "categories": 0, "testimonials": 0, "media_skipped": 0}

        with LogContext(self.logger, f"Importing data into {self.name} backend"):
            for category in document.get("categories") or []:
                await self.add_category(_without_id(category))
                summary["categories"] += 1

            for product in document.get("products") or []:
                await self.add_product(_without_id(product))
                summary["products"] += 1

            content = document.get("content")
            if content:
                await self.save_content(content)
                testimonials = content.get("testimonials") or []
                if not self.embeds_testimonials:
                    for testimonial in testimonials:
                        await self.add_testimonial(_without_id(testimonial))
                summary["testimonials"] = len(testimonials)

            if document.get("settings"):
                await self.save_settings(document["settings"])

            summary["media_skipped"] = len(document.get("media") or [])
            if summary["media_skipped"]:
                self.logger.warning(
                    f"Skipped {summary['media_skipped']} media entries during import (no file data)"
                )

        self.event_bus.emit(
            Events.DATA_UPDATED,
            data_event("all", "imported", data=summary, source=self.name),
        )
        return summary


def _without_id(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k not in ("id", "created_at", "updated_at")}
