# =============================================================================
# cms_core/storage/connection_prober.py
# Hosted Database Availability Detection
# =============================================================================
"""
BackendProber - decides whether the hosted database can serve requests.

Features:
- Configuration check before any network I/O
- Cheap probe query (one id from products)
- Cached result until force_recheck()
- Concurrent callers share one in-flight probe
- Status callbacks and a UI status dict
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
import logging

from .supabase_client import SupabaseClientProvider

logger = logging.getLogger(__name__)


class ProbeStatus(Enum):
    """Probe states."""
    UNCHECKED = "unchecked"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    NOT_CONFIGURED = "not_configured"


@dataclass
class ProbeState:
    """Last probe outcome with metadata."""
    status: ProbeStatus = ProbeStatus.UNCHECKED
    last_check: Optional[datetime] = None
    error_message: Optional[str] = None
    consecutive_failures: int = 0


class BackendProber:
    """
    Cached availability check for the hosted database.

    Usage:
        prober = BackendProber(provider)
        if await prober.check_availability():
            ...  # use the remote backend
    """

    PROBE_TABLE = "products"

    def __init__(self, provider: SupabaseClientProvider):
        self.provider = provider
        self._state = ProbeState()
        self._callbacks: List[Callable[[ProbeState], None]] = []
        self._inflight: Optional[asyncio.Future] = None

    @property
    def state(self) -> ProbeState:
        return self._state

    @property
    def status(self) -> ProbeStatus:
        return self._state.status

    @property
    def has_configuration(self) -> bool:
        return self.provider.is_configured

    @property
    def cached_result(self) -> Optional[bool]:
        """Cached availability, or None before the first probe."""
        if self._state.status == ProbeStatus.UNCHECKED:
            return None
        return self._state.status == ProbeStatus.AVAILABLE

    async def check_availability(self) -> bool:
        """Return the cached result, probing once if nothing is cached."""
        cached = self.cached_result
        if cached is not None:
            return cached
        return await self._shared_probe()

    async def force_recheck(self) -> bool:
        """Discard the cached result and probe again."""
        self._state.status = ProbeStatus.UNCHECKED
        return await self._shared_probe()

    async def _shared_probe(self) -> bool:
        # Callers arriving while a probe runs await that probe
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._probe())
        return await asyncio.shield(self._inflight)

    async def _probe(self) -> bool:
        previous = self._state.status

        if not self.has_configuration:
            self._set_state(ProbeStatus.NOT_CONFIGURED, "Supabase URL or key not configured")
            logger.info("Hosted database not configured; using local storage")
        else:
            try:
                client = await self.provider.get()
                await client.table(self.PROBE_TABLE).select("id").limit(1).execute()
                self._set_state(ProbeStatus.AVAILABLE)
                logger.info("Hosted database available")
            except Exception as e:
                self._set_state(ProbeStatus.UNAVAILABLE, str(e))
                logger.warning(f"Hosted database unavailable: {e}")

        if self._state.status != previous:
            self._notify_callbacks()
        return self._state.status == ProbeStatus.AVAILABLE

    def _set_state(self, status: ProbeStatus, error: Optional[str] = None) -> None:
        self._state.status = status
        self._state.last_check = datetime.now()
        self._state.error_message = error
        if status == ProbeStatus.AVAILABLE:
            self._state.consecutive_failures = 0
        elif status == ProbeStatus.UNAVAILABLE:
            self._state.consecutive_failures += 1

    def register_callback(self, callback: Callable[[ProbeState], None]) -> None:
        """Register a callback for status changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ProbeState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in probe callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "available": self._state.status == ProbeStatus.AVAILABLE,
            "configured": self.has_configuration,
            "last_check": self._state.last_check.strftime("%H:%M:%S") if self._state.last_check else "Never",
            "error": self._state.error_message,
            "consecutive_failures": self._state.consecutive_failures,
        }
