# =============================================================================
# cms_core/storage/local_backend.py
# Local Backend - whole-collection JSON blobs in the local key/value store
# =============================================================================
"""
LocalBackend - offline storage for every website entity.

Each collection is one JSON blob under a fixed key. Every mutation reads
the collection, changes it in memory, serializes it and stores it in one
transaction, then waits ``write_delay`` seconds so the admin UI shows the
same saving states it shows against the hosted database.

Features:
- Seeds missing collections from bundled defaults on first access
- Sequential integer ids (max + 1), new records first
- Testimonials embedded in the content document
- Media bytes written under a local media directory
- Force-local and admin flags stored as "true"/"false"
"""

from __future__ import annotations
import asyncio
import json
import random
import sqlite3
import string
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse, unquote

from cms_core.config import DEFAULT_MEDIA_DIR, DEFAULT_WRITE_DELAY
from cms_core.errors import BackendOperationError, DataValidationError
from cms_core.logging import LogContext
from cms_core.models import (
    Product,
    Testimonial,
    Category,
    MediaItem,
    UploadFile,
    generate_slug,
    validate_rating,
    validate_upload,
)
from .base import StorageBackend, parse_import_payload
from .event_bus import EventBus, Events, data_event
from .local_store import LocalStore

DEFAULTS_DIR = Path(__file__).parent.parent / "defaults"


class LocalBackend(StorageBackend):
    """
    Local storage backend.

    Usage:
        backend = LocalBackend(LocalStore(path), EventBus())
        await backend.initialize()
        product = await backend.add_product({"name": "Steel Rod", "category": "Steel"})
    """

    name = "local"

    KEYS = {
        "products": "website_products",
        "content": "website_content",
        "settings": "website_settings",
        "media": "website_media",
        "categories": "website_categories",
    }
    FORCE_LOCAL_KEY = "force_local_storage"
    ADMIN_AUTH_KEY = "admin_authenticated"

    # Defaults for collections without a bundled file
    EMPTY_VALUES = {
        "products": list,
        "content": dict,
        "settings": dict,
        "media": list,
        "categories": list,
    }

    def __init__(
        self,
        store: LocalStore,
        event_bus: EventBus,
        write_delay: float = DEFAULT_WRITE_DELAY,
        defaults_dir: Optional[Path] = None,
        media_dir: Optional[Path] = None,
    ):
        super().__init__(event_bus)
        self.store = store
        self.write_delay = write_delay
        self.defaults_dir = Path(defaults_dir) if defaults_dir else DEFAULTS_DIR
        self.media_dir = Path(media_dir) if media_dir else DEFAULT_MEDIA_DIR
        self._seeded = False

    # =========================================================================
    # LIFECYCLE & RAW ACCESS
    # =========================================================================

    async def initialize(self) -> None:
        self._ensure_seeded()

    def _ensure_seeded(self) -> None:
        if self._seeded:
            return

        for entity, key in self.KEYS.items():
            if self.store.has_item(key):
                continue
            value = self._load_default(entity)
            self.store.set_item(key, json.dumps(value, ensure_ascii=False))
            self.logger.info(f"Seeded local '{key}' from defaults")

        self._seeded = True

    def _load_default(self, entity: str) -> Any:
        if entity == "media":
            return []
        path = self.defaults_dir / f"{entity}.json"
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to load default {entity} from {path}: {e}")
            return self.EMPTY_VALUES[entity]()

    def read_raw(self, entity: str) -> Optional[Any]:
        """Return the stored collection, or None when the key is absent (no seeding)."""
        raw = self.store.get_item(self.KEYS[entity])
        if raw is None:
            return None
        return self._decode(entity, raw)

    def _decode(self, entity: str, raw: str) -> Any:
        try:
            return json.loads(raw)
        except ValueError as e:
            raise BackendOperationError(
                f"Stored {entity} data is corrupted: {e}",
                operation=f"read {entity}",
                backend=self.name,
            ) from e

    def _read(self, entity: str) -> Any:
        self._ensure_seeded()
        value = self.read_raw(entity)
        if value is None:
            return self.EMPTY_VALUES[entity]()
        return value

    async def _write(self, entity: str, value: Any) -> None:
        """Serialize, store atomically, then wait out the write delay."""
        try:
            serialized = json.dumps(value, ensure_ascii=False)
            self.store.set_item(self.KEYS[entity], serialized)
        except (TypeError, ValueError, sqlite3.Error) as e:
            raise BackendOperationError(
                f"Failed to save {entity}: {e}",
                operation=f"save {entity}",
                backend=self.name,
            ) from e
        await self._delay()

    async def _delay(self) -> None:
        if self.write_delay > 0:
            await asyncio.sleep(self.write_delay)

    def clear_all(self) -> None:
        """Remove every local collection (flags are kept)."""
        for key in self.KEYS.values():
            self.store.remove_item(key)
        self._seeded = False
        self.logger.info("Cleared local website data")

    # =========================================================================
    # FLAGS
    # =========================================================================

    def _get_flag(self, key: str) -> bool:
        return self.store.get_item(key) == "true"

    def _set_flag(self, key: str, enabled: bool) -> None:
        if enabled:
            self.store.set_item(key, "true")
        else:
            self.store.remove_item(key)

    def is_force_local(self) -> bool:
        return self._get_flag(self.FORCE_LOCAL_KEY)

    def set_force_local(self, enabled: bool) -> None:
        self._set_flag(self.FORCE_LOCAL_KEY, enabled)

    def is_admin_authenticated(self) -> bool:
        return self._get_flag(self.ADMIN_AUTH_KEY)

    def set_admin_authenticated(self, enabled: bool) -> None:
        self._set_flag(self.ADMIN_AUTH_KEY, enabled)

    # =========================================================================
    # SEQUENCED COLLECTIONS
    # =========================================================================

    @staticmethod
    def _next_id(records: List[Dict[str, Any]]) -> int:
        ids = [r["id"] for r in records if isinstance(r.get("id"), int)]
        return max([0] + ids) + 1

    @staticmethod
    def _merge(records: List[Dict[str, Any]], record_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for index, record in enumerate(records):
            if record.get("id") == record_id:
                merged = {**record, **{k: v for k, v in updates.items() if k != "id"}}
                records[index] = merged
                return merged
        return None

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    async def get_products(self) -> List[Dict[str, Any]]:
        return self._read("products")

    async def add_product(self, product: Dict[str, Any]) -> Dict[str, Any]:
        products = self._read("products")
        new_product = Product.from_dict(product).to_dict()
        new_product["id"] = self._next_id(products)
        products.insert(0, new_product)
        await self._write("products", products)
        self._emit("products", "added", data=new_product, id=new_product["id"])
        return new_product

    async def update_product(self, product_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        products = self._read("products")
        updated = self._merge(products, product_id, updates)
        if updated is None:
            self.logger.debug(f"update_product: no product with id {product_id}")
            await self._delay()
            return None
        await self._write("products", products)
        self._emit("products", "updated", data=updated, id=product_id)
        return updated

    async def delete_product(self, product_id: int) -> None:
        products = self._read("products")
        remaining = [p for p in products if p.get("id") != product_id]
        await self._write("products", remaining)
        if len(remaining) != len(products):
            self._emit("products", "deleted", id=product_id)

    # =========================================================================
    # CONTENT & SETTINGS
    # =========================================================================

    async def get_content(self) -> Dict[str, Any]:
        return self._read("content")

    async def save_content(self, content: Dict[str, Any]) -> None:
        document = dict(content)
        if "testimonials" not in document:
            document["testimonials"] = self._read("content").get("testimonials", [])
        await self._write("content", document)
        self._emit("content", "saved", data=document)

    async def get_settings(self) -> Dict[str, Any]:
        return self._read("settings")

    async def save_settings(self, settings: Dict[str, Any]) -> None:
        await self._write("settings", dict(settings))
        self._emit("settings", "saved", data=settings)

    # =========================================================================
    # MEDIA
    # =========================================================================

    async def get_media(self) -> List[Dict[str, Any]]:
        return self._read("media")

    async def add_media_item(
        self,
        file: UploadFile,
        category: str = "general",
        allow_video: bool = False,
    ) -> Dict[str, Any]:
        validate_upload(file, allow_video=allow_video)

        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        target = self.media_dir / generate_slug(category or "general") / (
            f"{int(time.time() * 1000)}-{suffix}.{file.extension}"
        )
        try:
            await asyncio.to_thread(_write_bytes, target, file.content)
        except OSError as e:
            raise BackendOperationError(
                f"Failed to store media file {file.name}: {e}",
                operation="upload media",
                backend=self.name,
            ) from e

        item = MediaItem.from_upload(file, url=target.resolve().as_uri(), category=category).to_dict()
        media = self._read("media")
        media.insert(0, item)
        await self._write("media", media)
        self._emit("media", "added", data=item, id=item["id"])
        return item

    async def delete_media_item(self, media_id: str) -> None:
        media = self._read("media")
        removed = [m for m in media if m.get("id") == media_id]
        await self._write("media", [m for m in media if m.get("id") != media_id])
        for item in removed:
            self._remove_media_file(item.get("url", ""))
        if removed:
            self._emit("media", "deleted", id=media_id)

    def _remove_media_file(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            return
        path = Path(unquote(parsed.path))
        try:
            path.relative_to(self.media_dir.resolve())
        except ValueError:
            return
        path.unlink(missing_ok=True)

    # =========================================================================
    # TESTIMONIALS (embedded in content)
    # =========================================================================

    async def get_testimonials(self) -> List[Dict[str, Any]]:
        return list(self._read("content").get("testimonials", []))

    async def add_testimonial(self, testimonial: Dict[str, Any]) -> Dict[str, Any]:
        content = self._read("content")
        testimonials = content.setdefault("testimonials", [])
        new_testimonial = Testimonial.from_dict(testimonial).to_dict()
        new_testimonial["id"] = self._next_id(testimonials)
        testimonials.insert(0, new_testimonial)
        await self._write("content", content)
        self._emit("testimonials", "added", data=new_testimonial, id=new_testimonial["id"])
        return new_testimonial

    async def update_testimonial(self, testimonial_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if "rating" in updates:
            updates = {**updates, "rating": validate_rating(updates["rating"])}
        content = self._read("content")
        updated = self._merge(content.setdefault("testimonials", []), testimonial_id, updates)
        if updated is None:
            await self._delay()
            return None
        await self._write("content", content)
        self._emit("testimonials", "updated", data=updated, id=testimonial_id)
        return updated

    async def delete_testimonial(self, testimonial_id: int) -> None:
        content = self._read("content")
        before = content.get("testimonials", [])
        content["testimonials"] = [t for t in before if t.get("id") != testimonial_id]
        await self._write("content", content)
        if len(content["testimonials"]) != len(before):
            self._emit("testimonials", "deleted", id=testimonial_id)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def get_categories(self) -> List[Dict[str, Any]]:
        return sorted(self._read("categories"), key=lambda c: c.get("display_order", 0))

    async def add_category(self, category: Dict[str, Any]) -> Dict[str, Any]:
        categories = self._read("categories")
        new_category = Category.from_dict(category).to_dict()
        if "display_order" not in category:
            orders = [c.get("display_order", 0) for c in categories]
            new_category["display_order"] = max(orders) + 1 if orders else 0
        new_category["id"] = self._next_id(categories)
        categories.append(new_category)
        await self._write("categories", categories)
        self._emit("categories", "added", data=new_category, id=new_category["id"])
        return new_category

    async def update_category(self, category_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        categories = self._read("categories")
        updated = self._merge(categories, category_id, updates)
        if updated is None:
            await self._delay()
            return None
        await self._write("categories", categories)
        self._emit("categories", "updated", data=updated, id=category_id)
        return updated

    async def delete_category(self, category_id: int) -> None:
        categories = self._read("categories")
        remaining = [c for c in categories if c.get("id") != category_id]
        await self._write("categories", remaining)
        if len(remaining) != len(categories):
            self._emit("categories", "deleted", id=category_id)

    async def reorder_categories(self, category_ids: List[int]) -> None:
        categories = self._read("categories")
        positions = {category_id: index for index, category_id in enumerate(category_ids)}
        for category in categories:
            if category.get("id") in positions:
                category["display_order"] = positions[category["id"]]
        await self._write("categories", categories)
        self._emit("categories", "reordered", data=list(category_ids))

    # =========================================================================
    # IMPORT (validated, wholesale replace)
    # =========================================================================

    async def import_data(self, data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, int]:
        """
        Replace local collections with the ones in an export document.

        Every record passes the same checks as an interactive edit before
        anything is written, so one bad record rejects the whole file.
        Records keep their ids; collections missing from the document are
        left as they are.

        Raises:
            DataValidationError: a collection or record fails validation
        """
        document = parse_import_payload(data)
        collections = {
            entity: _validate_collection(entity, document[entity])
            for entity in self.KEYS
            if document.get(entity) is not None
        }
        summary = {}

        with LogContext(self.logger, "Importing data into local backend"):
            self._ensure_seeded()
            for entity, value in collections.items():
                await self._write(entity, value)
                summary[entity] = len(value) if isinstance(value, list) else 1

        self.event_bus.emit(
            Events.DATA_UPDATED,
            data_event("all", "imported", data=summary, source=self.name),
        )
        return summary


def _write_bytes(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


_RECORD_VALIDATORS = {
    "products": Product.from_dict,
    "categories": Category.from_dict,
}


def _validate_collection(entity: str, value: Any) -> Any:
    """Check one imported collection; records are stored as given."""
    expected = list if entity in ("products", "media", "categories") else dict
    if not isinstance(value, expected):
        raise DataValidationError(
            f"Imported {entity} must be a {'list' if expected is list else 'mapping'}",
            entity=entity,
        )

    records = value
    validator = _RECORD_VALIDATORS.get(entity)
    if entity == "content":
        records = value.get("testimonials") or []
        validator = Testimonial.from_dict
    elif entity == "media":
        validator = _validate_media_entry

    for record in records if validator else []:
        if not isinstance(record, dict):
            raise DataValidationError(f"Imported {entity} entries must be objects", entity=entity)
        validator(record)
    return value


def _validate_media_entry(record: Dict[str, Any]) -> None:
    if not record.get("id") or not record.get("url"):
        raise DataValidationError("Media entry id and url are required", entity="media")
