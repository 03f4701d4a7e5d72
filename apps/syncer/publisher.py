"""
Archive Publisher for Syncer Service

Uploads the encoded export to durable storage under a deterministic key.
The key is opaque to publishers: they store the payload under exactly that
name and infer nothing from its structure.

Backends:
- blob: Azure Blob Storage container (connection string)
- local: directory on the local filesystem

Usage:
    from apps.syncer.publisher import archive_key, build_publisher

    publisher = build_publisher(settings)
    key = archive_key(settings.ARCHIVE_PREFIX, settings.ARCHIVE_LABEL, started_at)
    location = await publisher.publish(payload, key)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol

from azure.core.exceptions import AzureError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from utils.config import Settings
from utils.errors import PublishFailure
from utils.schemas import ensure_utc

logger = logging.getLogger(__name__)


def archive_key(prefix: str, label: str, at: datetime, ext: str = "csv") -> str:
    """
    Build the archive key for an export.

    Format: <prefix>/<yyyy>/<MM>/<dd>/<label>_<HHmmss>.<ext>, all in UTC.
    """
    at = ensure_utc(at)
    return f"{prefix.strip('/')}/{at:%Y/%m/%d}/{label}_{at:%H%M%S}.{ext}"


class ArchivePublisher(Protocol):
    async def publish(self, payload: bytes, key: str) -> str:
        """Store payload under key; return the stored location or raise PublishFailure."""
        ...


class BlobArchivePublisher:
    """Azure Blob Storage backend."""

    def __init__(self, connection_string: str, container_name: str) -> None:
        self.connection_string = connection_string
        self.container_name = container_name

    async def publish(self, payload: bytes, key: str) -> str:
        try:
            async with BlobServiceClient.from_connection_string(self.connection_string) as service:
                blob = service.get_blob_client(container=self.container_name, blob=key)
                await blob.upload_blob(
                    payload,
                    overwrite=True,
                    content_settings=ContentSettings(content_type="text/csv; charset=utf-8"),
                )
                location = blob.url
        except (AzureError, ValueError) as e:
            # ValueError: malformed connection string
            logger.error(
                "Blob upload failed",
                extra={"container": self.container_name, "key": key, "error": str(e)},
            )
            raise PublishFailure(f"Blob upload failed for {key}: {e}", details={"key": key}) from e

        logger.info("CSV file uploaded to Blob Storage: container=%s, key=%s", self.container_name, key)
        return location


class LocalArchivePublisher:
    """Filesystem backend, useful for development and tests."""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    async def publish(self, payload: bytes, key: str) -> str:
        target = self.base_dir / key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as e:
            raise PublishFailure(f"Local archive write failed for {key}: {e}", details={"key": key}) from e

        logger.info("CSV file archived locally: %s", target)
        return str(target)


def build_publisher(settings: Settings) -> ArchivePublisher:
    """
    Select the archive backend from ARCHIVE_BACKEND.

    Raises:
        ConfigError: If the selected backend is missing required settings
    """
    if settings.ARCHIVE_BACKEND == "blob":
        settings.require("BLOB_CONNECTION_STRING", "BLOB_CONTAINER_NAME")
        return BlobArchivePublisher(settings.BLOB_CONNECTION_STRING, settings.BLOB_CONTAINER_NAME)
    settings.require("LOCAL_ARCHIVE_DIR")
    return LocalArchivePublisher(settings.LOCAL_ARCHIVE_DIR)
