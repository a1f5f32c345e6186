# =============================================================================
# cms_core/storage/diagnostics.py
# Media Storage Consistency Checks
# =============================================================================
"""
Compare objects in the media bucket with rows in the media table.

A failed metadata insert after a successful upload leaves an orphaned
blob; a manual delete in the bucket leaves a row pointing nowhere. The
sweep only reports; cleanup is a separate, explicit call and defaults to
a dry run.
"""

from __future__ import annotations
import asyncio
from typing import List
import logging

import pandas as pd

from cms_core.errors import MediaUploadError
from .object_storage import S3ObjectStorage
from .remote_backend import RemoteBackend

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_ORPHANED_BLOB = "orphaned_blob"
STATUS_MISSING_BLOB = "missing_blob"

COLUMNS = ["key", "url", "in_storage", "in_database", "status"]


async def find_storage_discrepancies(
    remote: RemoteBackend,
    storage: S3ObjectStorage,
) -> pd.DataFrame:
    """
    Join bucket listing and media rows on object key.

    Returns:
        DataFrame with columns key, url, in_storage, in_database, status
    """
    objects = await asyncio.to_thread(storage.list_objects)
    media = await remote.get_media()

    blobs = pd.DataFrame({"key": pd.Series([o["key"] for o in objects], dtype=object)})
    blobs["in_storage"] = True

    rows = pd.DataFrame({
        "key": pd.Series([storage.key_from_url(m.get("url", "")) for m in media], dtype=object),
        "url": pd.Series([m.get("url", "") for m in media], dtype=object),
    })
    rows = rows.dropna(subset=["key"]).copy()
    rows["in_database"] = True

    report = blobs.merge(rows, on="key", how="outer")
    if report.empty:
        return pd.DataFrame(columns=COLUMNS)

    report["in_storage"] = report["in_storage"].eq(True)
    report["in_database"] = report["in_database"].eq(True)
    report["url"] = [
        url if isinstance(url, str) and url else storage.public_url(key)
        for key, url in zip(report["key"], report["url"])
    ]
    report["status"] = STATUS_OK
    report.loc[report["in_storage"] & ~report["in_database"], "status"] = STATUS_ORPHANED_BLOB
    report.loc[~report["in_storage"] & report["in_database"], "status"] = STATUS_MISSING_BLOB

    counts = report["status"].value_counts().to_dict()
    logger.info(f"Storage sweep: {counts}")
    return report[COLUMNS].sort_values("key").reset_index(drop=True)


def orphaned_keys(report: pd.DataFrame) -> List[str]:
    if report.empty:
        return []
    return report.loc[report["status"] == STATUS_ORPHANED_BLOB, "key"].tolist()


async def cleanup_orphaned_blobs(
    report: pd.DataFrame,
    storage: S3ObjectStorage,
    dry_run: bool = True,
) -> List[str]:
    """
    Delete blobs that no media row references.

    A key the storage service refuses to delete is logged and left for
    the next sweep.

    Returns:
        Keys deleted (or that would be deleted when dry_run is True)
    """
    keys = orphaned_keys(report)
    if dry_run:
        logger.info(f"Dry run: {len(keys)} orphaned blobs would be deleted")
        return keys

    deleted = []
    for key in keys:
        try:
            await asyncio.to_thread(storage.delete_object, key)
        except MediaUploadError as e:
            logger.warning(f"Orphaned blob {key} not deleted: {e.message}")
            continue
        deleted.append(key)
    logger.info(f"Deleted {len(deleted)}/{len(keys)} orphaned blobs")
    return deleted
