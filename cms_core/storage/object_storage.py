# =============================================================================
# cms_core/storage/object_storage.py
# S3-Compatible Object Storage for Media Files
# =============================================================================
"""
S3ObjectStorage - media blob storage on any S3-compatible endpoint
(Supabase Storage, MinIO, AWS).

The client is synchronous (boto3); async callers wrap calls with
``asyncio.to_thread``.
"""

from __future__ import annotations
import random
import string
import time
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cms_core.config import ObjectStorageSettings
from cms_core.errors import ConfigurationError, MediaUploadError

logger = logging.getLogger(__name__)

SUPABASE_S3_SUFFIX = "/storage/v1/s3"
CACHE_CONTROL = "max-age=3600"


def generate_object_key(folder: str, filename: str) -> str:
    """Build ``{folder}/{timestamp_ms}-{random}.{ext}`` for a new upload."""
    extension = PurePosixPath(filename).suffix.lstrip(".").lower() or "bin"
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    folder = (folder or "general").strip("/")
    return f"{folder}/{int(time.time() * 1000)}-{suffix}.{extension}"


class S3ObjectStorage:
    """
    Upload, delete and list media objects in one bucket.

    Usage:
        storage = S3ObjectStorage(config.object_storage)
        url = storage.upload_bytes(key, data, "image/png")
    """

    default_acl = "public-read"

    def __init__(self, settings: ObjectStorageSettings, client: Any = None):
        self.settings = settings
        self.bucket = settings.bucket_name
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.settings.is_configured:
                raise ConfigurationError(
                    "Object storage is not configured",
                    missing=self.settings.missing(),
                )
            self._client = boto3.client(
                "s3",
                endpoint_url=self.settings.endpoint,
                aws_access_key_id=self.settings.access_key_id,
                aws_secret_access_key=self.settings.secret_access_key,
                region_name=self.settings.region,
                config=Config(s3={"addressing_style": "path"}),
            )
        return self._client

    def public_url(self, key: str) -> str:
        """Publicly resolvable URL for an object key."""
        endpoint = self.settings.endpoint.rstrip("/")
        if endpoint.endswith(SUPABASE_S3_SUFFIX):
            base = endpoint[: -len(SUPABASE_S3_SUFFIX)]
            return f"{base}/storage/v1/object/public/{self.bucket}/{key}"
        return f"{endpoint}/{self.bucket}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Inverse of public_url; None when the URL is not in this bucket."""
        prefix = self.public_url("")
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    def upload_bytes(self, key: str, data: bytes, content_type: str) -> str:
        """
        Put an object and return its public URL.

        Raises:
            MediaUploadError: the storage service rejected the upload
        """
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
                ACL=self.default_acl,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {key} to {self.bucket}: {e}")
            raise MediaUploadError(
                f"Upload failed: {e}",
                key=key,
                bucket=self.bucket,
            ) from e

        url = self.public_url(key)
        logger.info(f"Uploaded {key} ({len(data)} bytes) to {url}")
        return url

    def delete_object(self, key: str) -> None:
        """
        Raises:
            MediaUploadError: the storage service rejected the delete
        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete {key} from {self.bucket}: {e}")
            raise MediaUploadError(
                f"Delete failed: {e}",
                key=key,
                bucket=self.bucket,
            ) from e
        logger.info(f"Deleted {key} from {self.bucket}")

    def list_objects(self, prefix: str = "") -> List[Dict[str, Any]]:
        """Every object under prefix as {key, size, last_modified}."""
        paginator = self.client.get_paginator("list_objects_v2")
        objects = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for entry in page.get("Contents", []):
                objects.append({
                    "key": entry["Key"],
                    "size": entry.get("Size", 0),
                    "last_modified": entry.get("LastModified"),
                })
        return objects

    def test_connection(self) -> bool:
        """HEAD the bucket; False on any client error."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return True
        except (ClientError, BotoCoreError, ConfigurationError) as e:
            logger.warning(f"Object storage connection test failed: {e}")
            return False
