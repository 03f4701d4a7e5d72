"""
CRM Web API Client - Paginated Query and Per-Record Update

Async client for the Dynamics-style OData endpoint holding the account
records. The pipeline depends only on the RecordSource protocol; this module
provides the HTTP implementation.

Features:
- Bearer token acquired on authenticate(), refreshed if it expires mid-run
- Server-driven paging via Prefer: odata.maxpagesize and @odata.nextLink
- Strict page validation (SchemaError on malformed payloads)
- PATCH with If-Match: * so a deleted record is never recreated

Usage:
    async with DynamicsClient(settings) as source:
        await source.authenticate()
        page = await source.fetch_page(None, page_index=1)
"""

import logging
from typing import Optional, Protocol

import httpx
import orjson
from pydantic import ValidationError

from utils.auth import AccessToken, ClientCredentialsTokenProvider
from utils.config import Settings
from utils.errors import AuthFailure, SchemaError, SourceUnavailable, UpdateFailure
from utils.schemas import Page

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    """What the pipeline needs from the remote record source."""

    async def authenticate(self) -> None: ...

    async def fetch_page(self, cursor: Optional[str], page_index: int) -> Page: ...

    async def mark_processed(self, record_id: str) -> None: ...


class DynamicsClient:
    """HTTP implementation of RecordSource for the accounts entity set."""

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        token_provider: Optional[ClientCredentialsTokenProvider] = None,
    ) -> None:
        settings.require("DYNAMICS_URL")
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        self._tokens = token_provider or ClientCredentialsTokenProvider(settings, self._http)
        self._token: AccessToken | None = None

    async def __aenter__(self) -> "DynamicsClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    @property
    def collection_url(self) -> str:
        return f"{self._settings.api_root}/{self._settings.DYNAMICS_ENTITY_SET}"

    def initial_query(self) -> tuple[str, dict[str, str]]:
        """URL and query parameters of the first page."""
        return self.collection_url, {"$select": ",".join(self._settings.SOURCE_SELECT_FIELDS)}

    def record_url(self, record_id: str) -> str:
        return f"{self.collection_url}({record_id})"

    async def authenticate(self) -> None:
        """Acquire a fresh bearer token.

        Raises:
            AuthFailure: If the token cannot be acquired
        """
        self._token = await self._tokens.acquire()

    async def _headers(self) -> dict[str, str]:
        if self._token is None:
            raise AuthFailure("Client used before authenticate()")
        if self._token.is_expired():
            logger.info("Access token expired mid-run, refreshing")
            self._token = await self._tokens.acquire()
        return {
            "Authorization": f"Bearer {self._token.token}",
            "Accept": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
        }

    async def fetch_page(self, cursor: Optional[str], page_index: int) -> Page:
        """Fetch one page of records.

        Args:
            cursor: Continuation link from the previous page, None for the first
            page_index: 1-based page number, used for diagnostics only

        Returns:
            Validated Page

        Raises:
            SourceUnavailable: On transport errors or non-success responses
            SchemaError: If the payload does not match the record schema
        """
        headers = await self._headers()
        headers["Prefer"] = f"odata.maxpagesize={self._settings.SOURCE_PAGE_SIZE}"

        if cursor is None:
            url, params = self.initial_query()
        else:
            # nextLink already carries the full query string
            url, params = cursor, None

        try:
            response = await self._http.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise SourceUnavailable(
                f"Error fetching page {page_index}: {e}", page_index=page_index
            ) from e

        if not response.is_success:
            logger.error(
                "Page fetch rejected: page=%d, status=%d, body=%s",
                page_index,
                response.status_code,
                response.text[:500],
            )
            raise SourceUnavailable(
                f"Error fetching page {page_index}: {response.status_code}",
                page_index=page_index,
                status=response.status_code,
            )

        try:
            payload = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise SchemaError(f"Page {page_index} is not valid JSON", page_index=page_index) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("value"), list):
            raise SchemaError(f"Page {page_index} has no 'value' array", page_index=page_index)

        try:
            return Page.model_validate(payload)
        except ValidationError as e:
            raise SchemaError(
                f"Page {page_index} failed validation: {e.error_count()} error(s)",
                page_index=page_index,
                errors=e.errors(include_url=False, include_input=False),
            ) from e

    async def mark_processed(self, record_id: str) -> None:
        """Set the processed flag on one record.

        Raises:
            UpdateFailure: On transport errors or non-success responses
        """
        try:
            headers = await self._headers()
        except AuthFailure as e:
            raise UpdateFailure(record_id, None, reason=e.message) from e
        headers["If-Match"] = "*"
        body = {self._settings.PROCESSED_FIELD: self._settings.PROCESSED_MARKER}

        try:
            response = await self._http.patch(
                self.record_url(record_id),
                content=orjson.dumps(body),
                headers={**headers, "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpdateFailure(record_id, None, reason=str(e) or type(e).__name__) from e

        if not response.is_success:
            raise UpdateFailure(record_id, response.status_code, reason=response.text[:500])
