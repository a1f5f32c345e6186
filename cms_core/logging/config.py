# =============================================================================
# cms_core/logging/config.py
# Logging Configuration for the Website CMS
# =============================================================================

import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional, Union


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")

# Client libraries that log every request at INFO
NOISY_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "hpack",
    "supabase",
    "realtime",
    "websockets",
    "botocore",
    "boto3",
    "s3transfer",
)


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_to_file: bool = False,
    log_filename: Optional[str] = None,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level, numeric or name such as "DEBUG" (default: INFO)
        log_to_file: Whether to also log to a file under logs/
        log_filename: Custom log filename (default: cms_YYYY-MM-DD.log)
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        LOG_DIR.mkdir(exist_ok=True)
        if log_filename is None:
            log_filename = f"cms_{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(LOG_DIR / log_filename))

    logging.basicConfig(
        level=_coerce_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("cms_core").info("Logging initialized")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Usage:
        from cms_core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Migration started")
    """
    return logging.getLogger(name)


class LogContext:
    """
    Context manager for logging operation timing and status.

    Usage:
        with LogContext(logger, "Migrating local data"):
            ...
        # Logs: "Migrating local data... started"
        # Logs: "Migrating local data... completed (2.34s)"
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.info(f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.info(f"{self.operation}... completed ({self.elapsed:.2f}s)")
        else:
            self.logger.error(
                f"{self.operation}... failed ({self.elapsed:.2f}s): {exc_val}",
                exc_info=True,
            )

        return False
