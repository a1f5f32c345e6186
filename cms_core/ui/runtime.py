# =============================================================================
# cms_core/ui/runtime.py
# Background Event Loop for the Streamlit Admin
# =============================================================================
"""
Streamlit reruns the script on every interaction, but the persistence
layer (and its realtime channels) must outlive reruns. AdminRuntime owns
one asyncio loop on a daemon thread; the script submits coroutines to it
and waits for the result.
"""

from __future__ import annotations
import asyncio
import dataclasses
import threading
from concurrent.futures import Future
from typing import Any, Awaitable, Optional
import logging

import streamlit as st

from cms_core.config import AppConfig, SupabaseSettings
from cms_core.logging import setup_logging
from cms_core.storage.layer import PersistenceLayer, build_persistence_layer

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """An asyncio event loop running forever on a daemon thread."""

    def __init__(self, name: str = "CMSEventLoop"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=name,
        )
        self._thread.start()
        logger.debug(f"Background loop '{name}' started")

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def submit(self, coro: Awaitable[Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the loop and block until it finishes."""
        return self.submit(coro).result(timeout=timeout)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)


class AdminRuntime:
    """Persistence layer plus the loop it runs on."""

    def __init__(self, layer: PersistenceLayer, loop: Optional[BackgroundLoop] = None):
        self.layer = layer
        self.loop = loop or BackgroundLoop()
        self.initialized = False

    @property
    def dispatcher(self):
        return self.layer.dispatcher

    @property
    def migration(self):
        return self.layer.migration

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        return self.loop.run(coro, timeout=timeout)

    def start(self) -> AdminRuntime:
        if not self.initialized:
            self.run(self.layer.initialize())
            self.initialized = True
        return self

    def shutdown(self) -> None:
        try:
            self.run(self.layer.destroy(), timeout=10)
        finally:
            self.loop.stop()
            self.initialized = False


def config_with_streamlit_secrets(config: AppConfig) -> AppConfig:
    """
    Fill Supabase settings from .streamlit/secrets.toml when the
    environment has none:

        [supabase]
        url = "https://your-project.supabase.co"
        key = "your-anon-key"
    """
    if config.has_supabase_config:
        return config
    try:
        section = st.secrets["supabase"]
        settings = SupabaseSettings(url=section["url"], key=section["key"])
    except (KeyError, FileNotFoundError) as e:
        logger.debug(f"No Supabase secrets configured: {e}")
        return config
    return dataclasses.replace(config, supabase=settings)


@st.cache_resource
def get_admin_runtime() -> AdminRuntime:
    """One runtime per Streamlit server process."""
    config = config_with_streamlit_secrets(AppConfig.from_env())
    setup_logging(config.log_level)
    return AdminRuntime(build_persistence_layer(config)).start()
