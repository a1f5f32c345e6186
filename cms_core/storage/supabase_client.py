# =============================================================================
# cms_core/storage/supabase_client.py
# Lazily Created Async Supabase Client
# =============================================================================

from __future__ import annotations
from typing import Any, Optional
import logging

from supabase import acreate_client

from cms_core.config import SupabaseSettings
from cms_core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SupabaseClientProvider:
    """
    Owns one async Supabase client per persistence layer.

    The client is created on first use so a missing configuration never
    triggers a network attempt. Tests pass a prepared client instead.
    """

    def __init__(self, settings: SupabaseSettings, client: Any = None):
        self.settings = settings
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or self.settings.is_configured

    async def get(self) -> Any:
        """
        Return the shared client, creating it if needed.

        Raises:
            ConfigurationError: SUPABASE_URL or SUPABASE_KEY is missing
        """
        if self._client is None:
            if not self.settings.is_configured:
                missing = [
                    name for name, value in (
                        ("SUPABASE_URL", self.settings.url),
                        ("SUPABASE_KEY", self.settings.key),
                    ) if not value
                ]
                raise ConfigurationError("Supabase is not configured", missing=missing)
            self._client = await acreate_client(self.settings.url, self.settings.key)
            logger.info("Supabase async client created")
        return self._client

    async def close(self) -> None:
        """Drop realtime channels and forget the client."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.remove_all_channels()
        except Exception as e:
            logger.warning(f"Error closing Supabase realtime channels: {e}")
