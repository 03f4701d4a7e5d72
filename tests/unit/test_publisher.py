from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from azure.core.exceptions import AzureError

from apps.syncer import publisher as publisher_module
from apps.syncer.publisher import (
    BlobArchivePublisher,
    LocalArchivePublisher,
    archive_key,
    build_publisher,
)
from utils.errors import ConfigError, PublishFailure


def test_archive_key_format() -> None:
    at = datetime(2025, 3, 7, 4, 5, 9, tzinfo=timezone.utc)
    assert archive_key("accountentityprocessing", "AccountsProcessed", at) == (
        "accountentityprocessing/2025/03/07/AccountsProcessed_040509.csv"
    )


def test_archive_key_uses_utc() -> None:
    at = datetime(2025, 3, 7, 1, 0, 0, tzinfo=timezone(timedelta(hours=5)))
    assert archive_key("prefix/", "Label", at, ext="txt") == "prefix/2025/03/06/Label_200000.txt"


async def test_local_publisher_writes_under_key(tmp_path) -> None:
    publisher = LocalArchivePublisher(tmp_path)

    location = await publisher.publish(b"id\r\n", "p/2025/03/07/L_040509.csv")

    assert (tmp_path / "p/2025/03/07/L_040509.csv").read_bytes() == b"id\r\n"
    assert location.endswith("L_040509.csv")


async def test_local_publisher_failure(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file")

    with pytest.raises(PublishFailure):
        await LocalArchivePublisher(blocker).publish(b"x", "a/b.csv")


def test_build_publisher_selects_backend(settings) -> None:
    assert isinstance(build_publisher(settings), LocalArchivePublisher)

    blob = settings.model_copy(
        update={
            "ARCHIVE_BACKEND": "blob",
            "BLOB_CONNECTION_STRING": "UseDevelopmentStorage=true",
            "BLOB_CONTAINER_NAME": "exports",
        }
    )
    assert isinstance(build_publisher(blob), BlobArchivePublisher)


def test_build_publisher_requires_blob_settings(settings) -> None:
    with pytest.raises(ConfigError) as excinfo:
        build_publisher(settings.model_copy(update={"ARCHIVE_BACKEND": "blob"}))

    assert excinfo.value.details["missing"] == ["BLOB_CONNECTION_STRING", "BLOB_CONTAINER_NAME"]


class FakeBlobClient:
    def __init__(self, error: Exception | None) -> None:
        self.error = error
        self.uploads: list[tuple[bytes, dict]] = []
        self.url = "https://acct.blob.core.windows.net/exports/key.csv"

    async def upload_blob(self, data: bytes, **kwargs) -> None:
        if self.error:
            raise self.error
        self.uploads.append((data, kwargs))


class FakeBlobService:
    def __init__(self, blob: FakeBlobClient) -> None:
        self.blob = blob
        self.requested: list[tuple[str, str]] = []

    async def __aenter__(self) -> "FakeBlobService":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        pass

    def get_blob_client(self, container: str, blob: str) -> FakeBlobClient:
        self.requested.append((container, blob))
        return self.blob


def patch_blob_service(monkeypatch, blob: FakeBlobClient) -> FakeBlobService:
    service = FakeBlobService(blob)
    monkeypatch.setattr(
        publisher_module,
        "BlobServiceClient",
        SimpleNamespace(from_connection_string=lambda conn_str: service),
    )
    return service


async def test_blob_publisher_uploads_under_key(monkeypatch) -> None:
    blob = FakeBlobClient(error=None)
    service = patch_blob_service(monkeypatch, blob)

    location = await BlobArchivePublisher("UseDevelopmentStorage=true", "exports").publish(b"id\r\n", "p/key.csv")

    assert service.requested == [("exports", "p/key.csv")]
    data, kwargs = blob.uploads[0]
    assert data == b"id\r\n"
    assert kwargs["overwrite"] is True
    assert location == blob.url


async def test_blob_publisher_wraps_azure_errors(monkeypatch) -> None:
    patch_blob_service(monkeypatch, FakeBlobClient(error=AzureError("container not found")))

    with pytest.raises(PublishFailure) as excinfo:
        await BlobArchivePublisher("UseDevelopmentStorage=true", "exports").publish(b"x", "p/key.csv")

    assert excinfo.value.details == {"key": "p/key.csv"}


async def test_blob_publisher_rejects_malformed_connection_string() -> None:
    with pytest.raises(PublishFailure) as excinfo:
        await BlobArchivePublisher("not-a-connection-string", "exports").publish(b"x", "p/key.csv")

    assert isinstance(excinfo.value.__cause__, ValueError)
