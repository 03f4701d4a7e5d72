"""
Identity Token Provider - OAuth2 Client Credentials

Acquires a bearer token for the CRM Web API from the identity tenant using
the client-credentials grant. Tokens are acquired fresh per run; nothing is
cached across runs.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx

from utils.config import Settings
from utils.errors import AuthFailure
from utils.schemas import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None, leeway: timedelta = timedelta(seconds=60)) -> bool:
        return (now or utc_now()) + leeway >= self.expires_at


class ClientCredentialsTokenProvider:
    """Requests tokens from the tenant's v2.0 token endpoint."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        settings.require("CLIENT_ID", "CLIENT_SECRET", "TENANT_ID", "DYNAMICS_URL")
        self._settings = settings
        self._http = http_client

    @property
    def token_url(self) -> str:
        return f"{self._settings.AUTHORITY_HOST.rstrip('/')}/{self._settings.TENANT_ID}/oauth2/v2.0/token"

    @property
    def scope(self) -> str:
        return f"{self._settings.DYNAMICS_URL.rstrip('/')}/.default"

    async def acquire(self) -> AccessToken:
        """Acquire an access token for the source scope.

        Raises:
            AuthFailure: If the token endpoint is unreachable, rejects the
                credentials, or returns no access_token
        """
        data = {
            "client_id": self._settings.CLIENT_ID,
            "client_secret": self._settings.CLIENT_SECRET,
            "grant_type": "client_credentials",
            "scope": self.scope,
        }

        try:
            response = await self._http.post(
                self.token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.RequestError as e:
            logger.error("Token request failed: %s", e)
            raise AuthFailure("Failed to reach identity provider") from e

        if response.status_code != 200:
            logger.error(
                "Token request rejected: status=%d, body=%s",
                response.status_code,
                response.text,
            )
            raise AuthFailure(
                f"Token request failed: {response.status_code}",
                details={"status": response.status_code},
            )

        try:
            payload = response.json()
            token = payload["access_token"]
        except (ValueError, KeyError) as e:
            raise AuthFailure("Token response did not contain an access_token") from e

        expires_in = int(payload.get("expires_in", 3600))
        logger.info("Access token acquired", extra={"expires_in": expires_in})
        return AccessToken(token=token, expires_at=utc_now() + timedelta(seconds=expires_in))
