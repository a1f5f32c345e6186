# =============================================================================
# cms_core/storage/event_bus.py
# In-Process Publish/Subscribe for Data Change Notifications
# =============================================================================
"""
EventBus - keeps independent UI surfaces consistent without a central store.

Features:
- Synchronous delivery in registration order
- Per-handler error isolation (a failing handler is logged, others still run)
- One-shot subscriptions
- Handlers removed during an emit are not called later in that emit
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Events:
    """Event names shared by backends, dispatcher and hooks."""
    DATA_UPDATED = "data_updated"
    PRODUCT_UPDATED = "product_updated"
    CONTENT_UPDATED = "content_updated"
    SETTINGS_UPDATED = "settings_updated"
    MEDIA_UPDATED = "media_updated"
    TESTIMONIAL_UPDATED = "testimonial_updated"
    CATEGORY_UPDATED = "category_updated"
    RECONNECTED = "reconnected"


# Entity name -> typed event
ENTITY_EVENTS = {
    "products": Events.PRODUCT_UPDATED,
    "content": Events.CONTENT_UPDATED,
    "settings": Events.SETTINGS_UPDATED,
    "media": Events.MEDIA_UPDATED,
    "testimonials": Events.TESTIMONIAL_UPDATED,
    "categories": Events.CATEGORY_UPDATED,
}


def data_event(
    entity: str,
    action: str,
    data: Any = None,
    id: Any = None,
    source: str = "local",
) -> Dict[str, Any]:
    """Build the payload carried by DATA_UPDATED."""
    payload = {"type": entity, "action": action, "data": data, "source": source}
    if id is not None:
        payload["id"] = id
    return payload


@dataclass(eq=False)
class _Subscription:
    handler: Handler
    once: bool = False
    active: bool = True


class EventBus:
    """
    Named-event publish/subscribe.

    Usage:
        bus = EventBus()
        bus.on(Events.DATA_UPDATED, on_change)
        bus.emit(Events.DATA_UPDATED, {"type": "products", "action": "added"})
        bus.off(Events.DATA_UPDATED, on_change)
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[_Subscription]] = {}

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """
        Subscribe a handler.

        Returns:
            A callable that removes this handler again
        """
        self._subscriptions.setdefault(event, []).append(_Subscription(handler))
        return lambda: self.off(event, handler)

    def once(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe a handler that is removed before its first invocation."""
        self._subscriptions.setdefault(event, []).append(_Subscription(handler, once=True))
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        """Remove every registration of handler for event (no-op if absent)."""
        subs = self._subscriptions.get(event)
        if not subs:
            return

        remaining = []
        for sub in subs:
            if sub.handler == handler:
                sub.active = False
            else:
                remaining.append(sub)

        if remaining:
            self._subscriptions[event] = remaining
        else:
            del self._subscriptions[event]

    def emit(self, event: str, payload: Any = None) -> None:
        """Deliver payload to a snapshot of the current handlers."""
        for sub in list(self._subscriptions.get(event, ())):
            if not sub.active:
                continue
            if sub.once:
                self._discard(event, sub)
            try:
                sub.handler(payload)
            except Exception as e:
                logger.error(f"Error in '{event}' handler {sub.handler!r}: {e}", exc_info=True)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._subscriptions.get(event, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    def clear(self) -> None:
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.active = False
        self._subscriptions.clear()

    def _discard(self, event: str, target: _Subscription) -> None:
        target.active = False
        subs = self._subscriptions.get(event, [])
        if target in subs:
            subs.remove(target)
        if not subs:
            self._subscriptions.pop(event, None)
