# =============================================================================
# cms_core/storage/remote_backend.py
# Remote Backend - Supabase tables + S3-compatible media storage
# =============================================================================
"""
RemoteBackend - the hosted database implementation of StorageBackend.

Features:
- Row transforms between camelCase records and snake_case columns
- Content and settings stored one row per section, upserted section by
  section (no cross-section atomicity)
- Testimonials and categories in their own tables
- Media: validate -> upload blob -> insert metadata row -> notify
- Realtime change subscriptions bridged onto the event bus
- Client errors translated to BackendOperationError with the cause chained
"""

from __future__ import annotations
import asyncio
from typing import Any, Callable, Dict, List, Optional

from cms_core.errors import ConfigurationError, translate_backend_error
from cms_core.models import (
    Product,
    Testimonial,
    Category,
    MediaItem,
    UploadFile,
    validate_rating,
    validate_upload,
)
from .base import StorageBackend
from .event_bus import EventBus
from .object_storage import S3ObjectStorage, generate_object_key
from .realtime_bridge import RealtimeBridge
from .supabase_client import SupabaseClientProvider
from . import transforms

ENTITY_TABLES = ("products", "content", "settings", "media", "testimonials", "categories")


class RemoteBackend(StorageBackend):
    """
    Hosted database backend.

    Usage:
        backend = RemoteBackend(provider, bus, object_storage=storage, realtime=RealtimeBridge(bus))
        await backend.initialize()
        products = await backend.get_products()
    """

    name = "remote"
    embeds_testimonials = False

    def __init__(
        self,
        provider: SupabaseClientProvider,
        event_bus: EventBus,
        object_storage: Optional[S3ObjectStorage] = None,
        realtime: Optional[RealtimeBridge] = None,
    ):
        super().__init__(event_bus)
        self.provider = provider
        self.object_storage = object_storage
        self.realtime = realtime
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> None:
        """Verify the connection, then open realtime channels (idempotent)."""
        if self._initialized:
            return

        client = await self.provider.get()
        await self._run("connect to database", lambda c: c.table("products").select("id").limit(1))

        if self.realtime is not None:
            try:
                await self.realtime.subscribe_all(client)
            except Exception as e:
                self.logger.warning(f"Realtime subscriptions unavailable: {e}")

        self._initialized = True
        self.logger.info("Remote backend initialized")

    async def destroy(self) -> None:
        if self.realtime is not None and self.realtime.is_subscribed:
            client = await self.provider.get()
            await self.realtime.unsubscribe_all(client)
        self._initialized = False

    async def _run(self, operation: str, build: Callable[[Any], Any]) -> Any:
        """Build a query against the client, execute it, translate failures."""
        client = await self.provider.get()
        try:
            return await build(client).execute()
        except Exception as e:
            raise translate_backend_error(e, operation) from e

    async def count_rows(self, table: str) -> int:
        response = await self._run(
            f"count {table}",
            lambda c: c.table(table).select("id", count="exact").limit(1),
        )
        if response.count is not None:
            return response.count
        return len(response.data or [])

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    async def get_products(self) -> List[Dict[str, Any]]:
        response = await self._run(
            "fetch products",
            lambda c: c.table("products").select("*").order("created_at", desc=True),
        )
        return [transforms.product_from_db(row) for row in response.data or []]

    async def add_product(self, product: Dict[str, Any]) -> Dict[str, Any]:
        record = Product.from_dict(product).to_dict()
        record.pop("id", None)
        response = await self._run(
            "add product",
            lambda c: c.table("products").insert(transforms.product_to_db(record)),
        )
        created = transforms.product_from_db(response.data[0])
        self._emit("products", "added", data=created, id=created.get("id"))
        return created

    async def update_product(self, product_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = transforms.product_to_db(updates)
        if not row:
            return None
        response = await self._run(
            "update product",
            lambda c: c.table("products").update(row).eq("id", product_id),
        )
        if not response.data:
            return None
        updated = transforms.product_from_db(response.data[0])
        self._emit("products", "updated", data=updated, id=product_id)
        return updated

    async def delete_product(self, product_id: int) -> None:
        response = await self._run(
            "delete product",
            lambda c: c.table("products").delete().eq("id", product_id),
        )
        if response.data:
            self._emit("products", "deleted", id=product_id)

    # =========================================================================
    # CONTENT & SETTINGS (section keyed)
    # =========================================================================

    async def _read_sections(self, table: str, key_column: str, value_column: str) -> Dict[str, Any]:
        response = await self._run(
            f"fetch {table}",
            lambda c: c.table(table).select(f"{key_column}, {value_column}"),
        )
        return transforms.sections_to_document(response.data or [], key_column, value_column)

    async def _upsert_sections(self, table: str, rows: List[Dict[str, Any]], key_column: str) -> None:
        for row in rows:
            await self._run(
                f"save {table} section '{row[key_column]}'",
                lambda c, row=row: c.table(table).upsert(row, on_conflict=key_column),
            )

    async def get_content(self) -> Dict[str, Any]:
        content = await self._read_sections("content", "section", "data")
        content["testimonials"] = await self.get_testimonials()
        return content

    async def save_content(self, content: Dict[str, Any]) -> None:
        rows = transforms.document_to_sections(content, "section", "data", exclude=("testimonials",))
        await self._upsert_sections("content", rows, "section")
        self._emit("content", "saved", data=content)

    async def get_settings(self) -> Dict[str, Any]:
        return await self._read_sections("settings", "key", "value")

    async def save_settings(self, settings: Dict[str, Any]) -> None:
        rows = transforms.document_to_sections(settings, "key", "value")
        await self._upsert_sections("settings", rows, "key")
        self._emit("settings", "saved", data=settings)

    # =========================================================================
    # MEDIA
    # =========================================================================

    async def get_media(self) -> List[Dict[str, Any]]:
        response = await self._run(
            "fetch media",
            lambda c: c.table("media").select("*").order("upload_date", desc=True),
        )
        return [transforms.media_from_db(row) for row in response.data or []]

    async def add_media_item(
        self,
        file: UploadFile,
        category: str = "general",
        allow_video: bool = False,
    ) -> Dict[str, Any]:
        validate_upload(file, allow_video=allow_video)
        if self.object_storage is None:
            raise ConfigurationError("Object storage is not configured; cannot upload media")

        key = generate_object_key(category, file.name)
        url = await asyncio.to_thread(
            self.object_storage.upload_bytes, key, file.content, file.content_type
        )

        item = MediaItem.from_upload(file, url=url, category=category).to_dict()
        try:
            response = await self._run(
                "save media metadata",
                lambda c: c.table("media").insert(transforms.media_to_db(item)),
            )
        except Exception:
            self.logger.error(f"Media metadata insert failed; orphaned blob left at '{key}'")
            raise

        if response.data:
            item = transforms.media_from_db(response.data[0])
        self._emit("media", "added", data=item, id=item["id"])
        return item

    async def delete_media_item(self, media_id: str) -> None:
        response = await self._run(
            "delete media",
            lambda c: c.table("media").delete().eq("id", media_id),
        )
        if not response.data:
            return

        url = response.data[0].get("url", "")
        key = self.object_storage.key_from_url(url) if self.object_storage else None
        try:
            if key:
                await asyncio.to_thread(self.object_storage.delete_object, key)
        finally:
            # The row is gone even when the blob delete fails
            self._emit("media", "deleted", id=media_id)

    # =========================================================================
    # TESTIMONIALS
    # =========================================================================

    async def get_testimonials(self) -> List[Dict[str, Any]]:
        response = await self._run(
            "fetch testimonials",
            lambda c: c.table("testimonials").select("*").order("created_at", desc=True),
        )
        return [transforms.testimonial_from_db(row) for row in response.data or []]

    async def add_testimonial(self, testimonial: Dict[str, Any]) -> Dict[str, Any]:
        record = Testimonial.from_dict(testimonial).to_dict()
        record.pop("id", None)
        response = await self._run(
            "add testimonial",
            lambda c: c.table("testimonials").insert(transforms.testimonial_to_db(record)),
        )
        created = transforms.testimonial_from_db(response.data[0])
        self._emit("testimonials", "added", data=created, id=created.get("id"))
        return created

    async def update_testimonial(self, testimonial_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if "rating" in updates:
            updates = {**updates, "rating": validate_rating(updates["rating"])}
        row = transforms.testimonial_to_db(updates)
        if not row:
            return None
        response = await self._run(
            "update testimonial",
            lambda c: c.table("testimonials").update(row).eq("id", testimonial_id),
        )
        if not response.data:
            return None
        updated = transforms.testimonial_from_db(response.data[0])
        self._emit("testimonials", "updated", data=updated, id=testimonial_id)
        return updated

    async def delete_testimonial(self, testimonial_id: int) -> None:
        response = await self._run(
            "delete testimonial",
            lambda c: c.table("testimonials").delete().eq("id", testimonial_id),
        )
        if response.data:
            self._emit("testimonials", "deleted", id=testimonial_id)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def get_categories(self) -> List[Dict[str, Any]]:
        response = await self._run(
            "fetch categories",
            lambda c: c.table("categories").select("*").order("display_order"),
        )
        return [transforms.category_from_db(row) for row in response.data or []]

    async def add_category(self, category: Dict[str, Any]) -> Dict[str, Any]:
        record = Category.from_dict(category).to_dict()
        record.pop("id", None)
        if "display_order" not in category:
            existing = await self.get_categories()
            orders = [c.get("display_order", 0) for c in existing]
            record["display_order"] = max(orders) + 1 if orders else 0
        response = await self._run(
            "add category",
            lambda c: c.table("categories").insert(transforms.category_to_db(record)),
        )
        created = transforms.category_from_db(response.data[0])
        self._emit("categories", "added", data=created, id=created.get("id"))
        return created

    async def update_category(self, category_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = transforms.category_to_db(updates)
        if not row:
            return None
        response = await self._run(
            "update category",
            lambda c: c.table("categories").update(row).eq("id", category_id),
        )
        if not response.data:
            return None
        updated = transforms.category_from_db(response.data[0])
        self._emit("categories", "updated", data=updated, id=category_id)
        return updated

    async def delete_category(self, category_id: int) -> None:
        response = await self._run(
            "delete category",
            lambda c: c.table("categories").delete().eq("id", category_id),
        )
        if response.data:
            self._emit("categories", "deleted", id=category_id)

    async def reorder_categories(self, category_ids: List[int]) -> None:
        for index, category_id in enumerate(category_ids):
            await self._run(
                "reorder categories",
                lambda c, index=index, category_id=category_id: (
                    c.table("categories").update({"display_order": index}).eq("id", category_id)
                ),
            )
        self._emit("categories", "reordered", data=list(category_ids))
