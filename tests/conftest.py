"""
Shared pytest fixtures.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from utils.config import Settings
from utils.errors import AuthFailure, PublishFailure, SourceUnavailable, UpdateFailure
from utils.schemas import AccountRecord, Page

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
PAST = datetime(2025, 6, 1, 9, 30, 0, tzinfo=timezone.utc)
FUTURE = datetime(2025, 7, 1, 9, 30, 0, tzinfo=timezone.utc)


def make_record(record_id: str, **fields: Any) -> AccountRecord:
    return AccountRecord(id=record_id, **fields)


class FakeSource:
    """
    In-memory RecordSource.

    pages: records per page, served in order
    fail_pages: page_index -> HTTP status to fail that page with
    update_script: record_id -> statuses returned by successive update attempts
        (missing or exhausted scripts succeed with 204)
    """

    def __init__(
        self,
        pages: list[list[AccountRecord]],
        *,
        fail_pages: Optional[dict[int, int]] = None,
        update_script: Optional[dict[str, list[int]]] = None,
        auth_error: Optional[Exception] = None,
    ) -> None:
        self.pages = pages
        self.fail_pages = fail_pages or {}
        self.update_script = update_script or {}
        self.auth_error = auth_error
        self.authenticated = False
        self.page_requests: list[tuple[Optional[str], int]] = []
        self.update_calls: list[str] = []

    async def authenticate(self) -> None:
        if self.auth_error:
            raise self.auth_error
        self.authenticated = True

    async def fetch_page(self, cursor: Optional[str], page_index: int) -> Page:
        self.page_requests.append((cursor, page_index))
        if page_index in self.fail_pages:
            raise SourceUnavailable(
                f"Error fetching page {page_index}",
                page_index=page_index,
                status=self.fail_pages[page_index],
            )
        records = self.pages[page_index - 1] if self.pages else []
        next_link = f"cursor-{page_index + 1}" if page_index < len(self.pages) else None
        return Page(value=records, next_link=next_link)

    async def mark_processed(self, record_id: str) -> None:
        attempt = self.update_calls.count(record_id)
        self.update_calls.append(record_id)
        script = self.update_script.get(record_id, [])
        status = script[attempt] if attempt < len(script) else 204
        if status >= 300:
            raise UpdateFailure(record_id, status, reason="throttled" if status == 429 else "server error")


class RecordingPublisher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.published: list[tuple[str, bytes]] = []

    async def publish(self, payload: bytes, key: str) -> str:
        if self.fail:
            raise PublishFailure(f"cannot store {key}")
        self.published.append((key, payload))
        return f"memory://{key}"


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        CLIENT_ID="client-id",
        CLIENT_SECRET="client-secret",
        TENANT_ID="tenant-id",
        DYNAMICS_URL="https://contoso.crm.dynamics.com",
        ARCHIVE_BACKEND="local",
        LOCAL_ARCHIVE_DIR=str(tmp_path / "archive"),
        UPDATE_BACKOFF_SECONDS=0,
        SOURCE_PAGE_SIZE=2,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def auth_failure() -> AuthFailure:
    return AuthFailure("Token request failed: 401", details={"status": 401})
