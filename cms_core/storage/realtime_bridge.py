# =============================================================================
# cms_core/storage/realtime_bridge.py
# Bridges Supabase Realtime Changes onto the Local Event Bus
# =============================================================================
"""
RealtimeBridge - one postgres-changes channel per table, each payload
forwarded verbatim to the table's typed event and to DATA_UPDATED.

Only this module knows about realtime channels; tests drive ``forward``
directly or hand in a fake client.
"""

from __future__ import annotations
from typing import Any, Dict, List
import logging

from .event_bus import EventBus, Events, ENTITY_EVENTS, data_event

logger = logging.getLogger(__name__)

# table -> entity name used on the event bus
TABLE_ENTITIES = {
    "products": "products",
    "content": "content",
    "settings": "settings",
    "media": "media",
    "testimonials": "testimonials",
    "categories": "categories",
}


class RealtimeBridge:
    def __init__(self, event_bus: EventBus, tables: tuple = tuple(TABLE_ENTITIES)):
        self.event_bus = event_bus
        self.tables = tables
        self._channels: List[Any] = []

    @property
    def is_subscribed(self) -> bool:
        return bool(self._channels)

    def forward(self, table: str, payload: Any) -> None:
        """Re-emit a realtime payload for table."""
        entity = TABLE_ENTITIES.get(table, table)
        typed = ENTITY_EVENTS.get(entity)
        if typed:
            self.event_bus.emit(typed, payload)
        self.event_bus.emit(
            Events.DATA_UPDATED,
            data_event(entity, "realtime", data=payload, source="realtime"),
        )

    def _callback(self, table: str):
        def on_change(payload: Dict[str, Any]) -> None:
            logger.debug(f"Realtime change on {table}")
            self.forward(table, payload)
        return on_change

    async def subscribe_all(self, client: Any) -> None:
        """Open one channel per table (idempotent)."""
        if self._channels:
            return
        for table in self.tables:
            channel = client.channel(f"{table}_changes")
            channel.on_postgres_changes(
                "*",
                schema="public",
                table=table,
                callback=self._callback(table),
            )
            await channel.subscribe()
            self._channels.append(channel)
        logger.info(f"Realtime subscriptions active for {len(self._channels)} tables")

    async def unsubscribe_all(self, client: Any) -> None:
        channels, self._channels = self._channels, []
        for channel in channels:
            try:
                await client.remove_channel(channel)
            except Exception as e:
                logger.warning(f"Failed to remove realtime channel: {e}")
