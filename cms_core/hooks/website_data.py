# =============================================================================
# cms_core/hooks/website_data.py
# Data-Access Hook for Products, Content, Settings and Media
# =============================================================================
"""
WebsiteDataHook - per-UI-surface view of the website data.

One instance per surface (page, preview, admin panel). It loads through
the dispatcher on mount and keeps itself current from DATA_UPDATED:

- local deltas (added / updated / deleted / saved) are applied in place,
  de-duplicated by id so an optimistic update and its event never double up
- realtime, reconnection, mode_switch and import notifications trigger a
  full reload on the running event loop (or mark the hook stale)

After unmount() no state is touched, even if a backend call that started
earlier resolves later.
"""

from __future__ import annotations
import asyncio
import json
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from cms_core.logging import get_logger
from cms_core.models import UploadFile
from cms_core.storage.dispatcher import HybridDispatcher
from cms_core.storage.event_bus import EventBus, Events

logger = get_logger(__name__)

RELOAD_TYPES = ("reconnection", "mode_switch", "all")
RELOAD_ACTIONS = ("realtime", "imported", "reordered")

ChangeListener = Callable[[Dict[str, Any]], None]


def _upsert_by_id(records: List[Dict[str, Any]], record: Dict[str, Any], front: bool = True) -> List[Dict[str, Any]]:
    for index, existing in enumerate(records):
        if existing.get("id") == record.get("id"):
            updated = list(records)
            updated[index] = {**existing, **record}
            return updated
    return [record] + records if front else records + [record]


def _merge_by_id(records: List[Dict[str, Any]], record_id: Any, updates: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{**r, **updates} if r.get("id") == record_id else r for r in records]


def _remove_by_id(records: List[Dict[str, Any]], record_id: Any) -> List[Dict[str, Any]]:
    return [r for r in records if r.get("id") != record_id]


class WebsiteDataHook:
    """
    Usage:
        hook = WebsiteDataHook(layer.dispatcher, layer.event_bus)
        await hook.mount()
        await hook.update_product(5, {"featured": True})
        hook.unmount()
    """

    def __init__(
        self,
        dispatcher: HybridDispatcher,
        event_bus: EventBus,
        on_change: Optional[ChangeListener] = None,
    ):
        self.dispatcher = dispatcher
        self.event_bus = event_bus
        self.on_change = on_change

        self.products: List[Dict[str, Any]] = []
        self.content: Optional[Dict[str, Any]] = None
        self.settings: Optional[Dict[str, Any]] = None
        self.media: List[Dict[str, Any]] = []
        self.loading = True
        self.error: Optional[str] = None
        self.stale = False

        self._mounted = False
        self._reload_task: Optional[asyncio.Task] = None
        self._reload_pending = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def mount(self) -> None:
        if self._mounted:
            return
        self._mounted = True
        self.event_bus.on(Events.DATA_UPDATED, self._handle_data_updated)
        await self.load()

    def unmount(self) -> None:
        self._mounted = False
        self.event_bus.off(Events.DATA_UPDATED, self._handle_data_updated)
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()
        self._reload_task = None
        self._reload_pending = False

    async def load(self) -> None:
        """Fetch all four collections concurrently."""
        if not self._mounted:
            return
        self.loading = True
        self.error = None
        try:
            products, content, settings, media = await asyncio.gather(
                self.dispatcher.get_products(),
                self.dispatcher.get_content(),
                self.dispatcher.get_settings(),
                self.dispatcher.get_media(),
            )
        except Exception as e:
            logger.error(f"Error loading website data: {e}", exc_info=True)
            if self._mounted:
                self.error = "Failed to load website data"
                self.loading = False
            return

        if not self._mounted:
            return
        self.products = products
        self.content = content
        self.settings = settings
        self.media = media
        self.loading = False
        self.stale = False

    async def refresh(self) -> None:
        await self.load()

    # =========================================================================
    # EVENT HANDLING
    # =========================================================================

    def _handle_data_updated(self, payload: Dict[str, Any]) -> None:
        if not self._mounted or not isinstance(payload, dict):
            return

        kind = payload.get("type")
        action = payload.get("action")

        if kind in RELOAD_TYPES or action in RELOAD_ACTIONS:
            self._schedule_reload()
        else:
            self._apply_delta(kind, action, payload)

        if self.on_change is not None:
            self.on_change(payload)

    def _apply_delta(self, kind: str, action: str, payload: Dict[str, Any]) -> None:
        data = payload.get("data")
        record_id = payload.get("id")

        if kind == "products":
            if action == "added" and data:
                self.products = _upsert_by_id(self.products, data)
            elif action == "updated" and data:
                self.products = _merge_by_id(self.products, record_id, data)
            elif action == "deleted":
                self.products = _remove_by_id(self.products, record_id)
        elif kind == "media":
            if action == "added" and data:
                self.media = _upsert_by_id(self.media, data)
            elif action == "deleted":
                self.media = _remove_by_id(self.media, record_id)
        elif kind == "content" and action == "saved" and data is not None:
            testimonials = (self.content or {}).get("testimonials", [])
            self.content = {"testimonials": testimonials, **data}
        elif kind == "settings" and action == "saved" and data is not None:
            self.settings = data
        elif kind == "testimonials" and self.content is not None:
            testimonials = self.content.get("testimonials", [])
            if action == "added" and data:
                testimonials = _upsert_by_id(testimonials, data)
            elif action == "updated" and data:
                testimonials = _merge_by_id(testimonials, record_id, data)
            elif action == "deleted":
                testimonials = _remove_by_id(testimonials, record_id)
            self.content = {**self.content, "testimonials": testimonials}

    def _schedule_reload(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.stale = True
            return
        if self._reload_task is None or self._reload_task.done():
            self._reload_task = loop.create_task(self._reload_until_current())
        else:
            # The running load may already hold the old rows
            self._reload_pending = True
            self.stale = True

    async def _reload_until_current(self) -> None:
        while True:
            self._reload_pending = False
            await self.load()
            if not (self._mounted and self._reload_pending):
                return

    async def _guard(self, operation: str, coro):
        try:
            return await coro
        except Exception as e:
            logger.error(f"Failed to {operation}: {e}")
            if self._mounted:
                self.error = f"Failed to {operation}"
            raise

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    async def add_product(self, product: Dict[str, Any]) -> Dict[str, Any]:
        created = await self._guard("add product", self.dispatcher.add_product(product))
        if self._mounted:
            self.products = _upsert_by_id(self.products, created)
        return created

    async def update_product(self, product_id: int, updates: Dict[str, Any]) -> None:
        await self._guard("update product", self.dispatcher.update_product(product_id, updates))
        if self._mounted:
            self.products = _merge_by_id(self.products, product_id, updates)

    async def delete_product(self, product_id: int) -> None:
        await self._guard("delete product", self.dispatcher.delete_product(product_id))
        if self._mounted:
            self.products = _remove_by_id(self.products, product_id)

    # =========================================================================
    # CONTENT & SETTINGS
    # =========================================================================

    async def update_content(self, content: Dict[str, Any]) -> None:
        await self._guard("update content", self.dispatcher.save_content(content))
        if self._mounted:
            testimonials = (self.content or {}).get("testimonials", [])
            self.content = {"testimonials": testimonials, **content}

    async def update_settings(self, settings: Dict[str, Any]) -> None:
        await self._guard("update settings", self.dispatcher.save_settings(settings))
        if self._mounted:
            self.settings = settings

    # =========================================================================
    # MEDIA
    # =========================================================================

    async def upload_media(
        self,
        files: List[UploadFile],
        category: str = "general",
        allow_video: bool = False,
    ) -> List[Dict[str, Any]]:
        items = await self._guard(
            "upload media",
            asyncio.gather(*(
                self.dispatcher.add_media_item(f, category, allow_video=allow_video)
                for f in files
            )),
        )
        if self._mounted:
            for item in reversed(items):
                self.media = _upsert_by_id(self.media, item)
        return list(items)

    async def delete_media(self, media_id: str) -> None:
        await self._guard("delete media", self.dispatcher.delete_media_item(media_id))
        if self._mounted:
            self.media = _remove_by_id(self.media, media_id)

    # =========================================================================
    # TESTIMONIALS
    # =========================================================================

    def _set_testimonials(self, testimonials: List[Dict[str, Any]]) -> None:
        if self._mounted and self.content is not None:
            self.content = {**self.content, "testimonials": testimonials}

    def _testimonials(self) -> List[Dict[str, Any]]:
        return (self.content or {}).get("testimonials", [])

    async def add_testimonial(self, testimonial: Dict[str, Any]) -> Dict[str, Any]:
        created = await self._guard("add testimonial", self.dispatcher.add_testimonial(testimonial))
        self._set_testimonials(_upsert_by_id(self._testimonials(), created))
        return created

    async def update_testimonial(self, testimonial_id: int, updates: Dict[str, Any]) -> None:
        await self._guard("update testimonial", self.dispatcher.update_testimonial(testimonial_id, updates))
        self._set_testimonials(_merge_by_id(self._testimonials(), testimonial_id, updates))

    async def delete_testimonial(self, testimonial_id: int) -> None:
        await self._guard("delete testimonial", self.dispatcher.delete_testimonial(testimonial_id))
        self._set_testimonials(_remove_by_id(self._testimonials(), testimonial_id))

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_data(self) -> Tuple[str, str]:
        """Return (json_text, suggested_filename)."""
        document = await self._guard("export data", self.dispatcher.export_data())
        filename = f"website-data-{date.today().isoformat()}.json"
        return json.dumps(document, indent=2, ensure_ascii=False), filename

    async def import_data(self, text: str) -> Dict[str, int]:
        summary = await self._guard("import data", self.dispatcher.import_data(text))
        await self.load()
        return summary
