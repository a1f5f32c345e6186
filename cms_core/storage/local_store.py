# =============================================================================
# cms_core/storage/local_store.py
# SQLite Key/Value Store for Local (Offline) Mode
# =============================================================================
"""
LocalStore - per-profile key/value storage backed by a single SQLite file.

Each key holds one serialized string (a JSON blob for collections, "true"
or "false" for flags). A write replaces the value in one transaction, so a
failed write leaves the previous value untouched.

Features:
- Automatic schema creation
- Thread-local connections
- Transaction support
"""

from __future__ import annotations
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union
import logging

from cms_core.config import DEFAULT_LOCAL_DB_PATH

logger = logging.getLogger(__name__)


class LocalStore:
    """
    SQLite-backed replacement for browser local storage.

    Usage:
        store = LocalStore(Path("local_data/website.db"))
        store.set_item("website_products", "[]")
        raw = store.get_item("website_products")
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS local_storage (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        self.db_path = Path(db_path) if db_path else DEFAULT_LOCAL_DB_PATH
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._initialized = False
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            with self._lock:
                self._connections.append(conn)
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """Create the key/value table if needed."""
        if self._initialized:
            return
        with self.transaction() as conn:
            conn.execute(self.SCHEMA)
        self._initialized = True
        logger.info(f"Local store initialized at: {self.db_path}")

    # =========================================================================
    # KEY/VALUE OPERATIONS
    # =========================================================================

    def get_item(self, key: str) -> Optional[str]:
        self.initialize()
        row = self._get_connection().execute(
            "SELECT value FROM local_storage WHERE key = ?", [key]
        ).fetchone()
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Local store values must be strings, got {type(value).__name__}")
        self.initialize()
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO local_storage (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, value, datetime.now().isoformat()],
            )

    def remove_item(self, key: str) -> None:
        self.initialize()
        with self.transaction() as conn:
            conn.execute("DELETE FROM local_storage WHERE key = ?", [key])

    def has_item(self, key: str) -> bool:
        return self.get_item(key) is not None

    def keys(self) -> List[str]:
        self.initialize()
        rows = self._get_connection().execute(
            "SELECT key FROM local_storage ORDER BY key"
        ).fetchall()
        return [row["key"] for row in rows]

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()
        self._initialized = False
