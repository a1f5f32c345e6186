# =============================================================================
# cms_core/hooks/categories.py
# Data-Access Hook for Product Categories
# =============================================================================

from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Union

from cms_core.errors import DataValidationError
from cms_core.logging import get_logger
from cms_core.models import PROTECTED_CATEGORY, generate_slug
from cms_core.storage.dispatcher import HybridDispatcher
from cms_core.storage.event_bus import EventBus, Events
from cms_core.storage.local_backend import DEFAULTS_DIR

logger = get_logger(__name__)


def default_categories() -> List[Dict[str, Any]]:
    """Bundled category list used when the backend cannot be read."""
    path = DEFAULTS_DIR / "categories.json"
    return json.loads(path.read_text(encoding="utf-8"))


def _ordered(categories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(categories, key=lambda c: c.get("display_order", 0))


class CategoriesHook:
    """
    Category list for a UI surface, kept ordered by display_order.

    The conventional "All" category is shown like any other but cannot be
    edited or deleted through this hook.
    """

    generate_slug = staticmethod(generate_slug)

    def __init__(self, dispatcher: HybridDispatcher, event_bus: EventBus):
        self.dispatcher = dispatcher
        self.event_bus = event_bus
        self.categories: List[Dict[str, Any]] = []
        self.loading = True
        self.error: Optional[str] = None
        self._mounted = False

    async def mount(self) -> None:
        if self._mounted:
            return
        self._mounted = True
        self.event_bus.on(Events.DATA_UPDATED, self._handle_data_updated)
        await self.load()

    def unmount(self) -> None:
        self._mounted = False
        self.event_bus.off(Events.DATA_UPDATED, self._handle_data_updated)

    async def load(self) -> None:
        self.loading = True
        self.error = None
        try:
            categories = await self.dispatcher.get_categories()
        except Exception as e:
            logger.error(f"Failed to load categories, using defaults: {e}")
            if self._mounted:
                self.error = str(e)
                self.categories = default_categories()
                self.loading = False
            return

        if self._mounted:
            self.categories = _ordered(categories)
            self.loading = False

    def _handle_data_updated(self, payload: Dict[str, Any]) -> None:
        if not self._mounted or not isinstance(payload, dict):
            return
        kind, action = payload.get("type"), payload.get("action")
        if kind == "categories" and action in ("added", "updated") and payload.get("data"):
            self._replace(payload["data"])
        elif kind == "categories" and action == "deleted":
            self.categories = [c for c in self.categories if c.get("id") != payload.get("id")]

    def _replace(self, category: Dict[str, Any]) -> None:
        others = [c for c in self.categories if c.get("id") != category.get("id")]
        self.categories = _ordered(others + [category])

    def _find(self, category_id: int) -> Optional[Dict[str, Any]]:
        return next((c for c in self.categories if c.get("id") == category_id), None)

    def _refuse_protected(self, category_id: int, operation: str) -> None:
        category = self._find(category_id)
        if category is not None and category.get("name") == PROTECTED_CATEGORY:
            raise DataValidationError(
                f"The '{PROTECTED_CATEGORY}' category cannot be {operation}",
                entity="category",
                field="name",
            )

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def add_category(self, category: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(category)
        if not data.get("slug"):
            data["slug"] = generate_slug(data.get("name", ""))
        created = await self.dispatcher.add_category(data)
        if self._mounted:
            self._replace(created)
        return created

    async def update_category(self, category_id: int, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._refuse_protected(category_id, "edited")
        updated = await self.dispatcher.update_category(category_id, updates)
        if self._mounted and updated is not None:
            self._replace(updated)
        return updated

    async def delete_category(self, category_id: int) -> None:
        self._refuse_protected(category_id, "deleted")
        await self.dispatcher.delete_category(category_id)
        if self._mounted:
            self.categories = [c for c in self.categories if c.get("id") != category_id]

    async def reorder_categories(self, ordered: List[Union[int, Dict[str, Any]]]) -> None:
        """Persist a new order given ids or category dicts, first = position 0."""
        ids = [item["id"] if isinstance(item, dict) else item for item in ordered]
        await self.dispatcher.reorder_categories(ids)
        if self._mounted:
            positions = {category_id: index for index, category_id in enumerate(ids)}
            self.categories = _ordered([
                {**c, "display_order": positions[c["id"]]} if c.get("id") in positions else c
                for c in self.categories
            ])

    def active_categories(self) -> List[Dict[str, Any]]:
        return [c for c in self.categories if c.get("active", True)]

    def category_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return next((c for c in self.categories if c.get("slug") == slug), None)
