# =============================================================================
# cms_core/config.py
# Runtime Configuration (environment variables / .env)
# =============================================================================
"""
Configuration for the persistence layer.

Values come from the process environment, optionally primed from a ``.env``
file. Missing Supabase or object storage settings are not an error here:
the prober reports NOT_CONFIGURED and the dispatcher stays on local storage.

Environment variables:
    SUPABASE_URL, SUPABASE_KEY
    S3_ENDPOINT, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_BUCKET_NAME
    CMS_LOCAL_DB_PATH, CMS_MEDIA_DIR, CMS_LOCAL_WRITE_DELAY, CMS_LOG_LEVEL
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_LOCAL_DB_PATH = PROJECT_ROOT / "local_data" / "website.db"
DEFAULT_MEDIA_DIR = PROJECT_ROOT / "local_data" / "media"
DEFAULT_BUCKET_NAME = "website-images"
DEFAULT_WRITE_DELAY = 0.5


@dataclass(frozen=True)
class SupabaseSettings:
    url: str = ""
    key: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.key)


@dataclass(frozen=True)
class ObjectStorageSettings:
    endpoint: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket_name: str = DEFAULT_BUCKET_NAME
    region: str = "us-east-1"

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.access_key_id and self.secret_access_key)

    def missing(self) -> list:
        names = {
            "S3_ENDPOINT": self.endpoint,
            "S3_ACCESS_KEY_ID": self.access_key_id,
            "S3_SECRET_ACCESS_KEY": self.secret_access_key,
        }
        return [name for name, value in names.items() if not value]


@dataclass(frozen=True)
class AppConfig:
    supabase: SupabaseSettings = field(default_factory=SupabaseSettings)
    object_storage: ObjectStorageSettings = field(default_factory=ObjectStorageSettings)
    local_db_path: Path = DEFAULT_LOCAL_DB_PATH
    media_dir: Path = DEFAULT_MEDIA_DIR
    local_write_delay: float = DEFAULT_WRITE_DELAY
    log_level: str = "INFO"

    @property
    def has_supabase_config(self) -> bool:
        return self.supabase.is_configured

    @property
    def has_storage_config(self) -> bool:
        return self.object_storage.is_configured

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> AppConfig:
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (no .env loading)
            dotenv_path: Explicit .env file; default search when None

        Returns:
            Frozen AppConfig
        """
        if environ is None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
            environ = os.environ

        def read(name: str, default: str = "") -> str:
            return (environ.get(name) or default).strip()

        try:
            write_delay = float(read("CMS_LOCAL_WRITE_DELAY", str(DEFAULT_WRITE_DELAY)))
        except ValueError:
            write_delay = DEFAULT_WRITE_DELAY

        return cls(
            supabase=SupabaseSettings(
                url=read("SUPABASE_URL"),
                key=read("SUPABASE_KEY"),
            ),
            object_storage=ObjectStorageSettings(
                endpoint=read("S3_ENDPOINT"),
                access_key_id=read("S3_ACCESS_KEY_ID"),
                secret_access_key=read("S3_SECRET_ACCESS_KEY"),
                bucket_name=read("S3_BUCKET_NAME", DEFAULT_BUCKET_NAME),
            ),
            local_db_path=Path(read("CMS_LOCAL_DB_PATH", str(DEFAULT_LOCAL_DB_PATH))),
            media_dir=Path(read("CMS_MEDIA_DIR", str(DEFAULT_MEDIA_DIR))),
            local_write_delay=max(0.0, write_delay),
            log_level=read("CMS_LOG_LEVEL", "INFO").upper(),
        )
