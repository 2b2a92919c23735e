"""
Google OAuth access tokens for the Gmail tools.

Access tokens are obtained from the configured refresh token through Google's
token endpoint and cached until shortly before they expire. Refreshing and
swapping the refresh token both go through one lock, so concurrent tool calls
never race on the credentials.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

from voice_bridge.config.constants import LOGGER_NAME
from voice_bridge.exceptions import ToolExecutionError

logger = logging.getLogger(LOGGER_NAME)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
EXPIRY_MARGIN = 60  # seconds


class GoogleCredentials:
    """
    Refresh-token based credentials for Google APIs.

    Args:
        client_id: OAuth client id
        client_secret: OAuth client secret
        refresh_token: Long-lived refresh token
        http_client: Shared httpx client used for the token exchange
        clock: Time source for token expiry
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        refresh_token: Optional[str],
        http_client: httpx.AsyncClient,
        clock=time.monotonic,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self._refresh_token = refresh_token
        self._http = http_client
        self._clock = clock
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self._refresh_token)

    async def update_refresh_token(self, refresh_token: str) -> None:
        """Replace the refresh token and drop the cached access token."""
        async with self._lock:
            self._refresh_token = refresh_token
            self._access_token = None
            self._expires_at = 0.0
        logger.info("Google refresh token updated")

    async def access_token(self, tool_name: str = "gmail") -> str:
        """
        Return a valid access token, refreshing it if needed.

        Raises:
            ToolExecutionError: If credentials are missing or the exchange fails
        """
        async with self._lock:
            if self._access_token and self._clock() < self._expires_at:
                return self._access_token
            if not self.configured:
                raise ToolExecutionError(
                    tool_name,
                    "Gmail is not configured. Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GMAIL_REFRESH_TOKEN.",
                )
            await self._refresh(tool_name)
            return self._access_token

    async def _refresh(self, tool_name: str) -> None:
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self._refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            response = await self._http.post(GOOGLE_TOKEN_URL, data=data)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Google token endpoint returned {e.response.status_code}: {e.response.text}")
            raise ToolExecutionError(
                tool_name, f"Google token refresh failed: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Google token request failed: {e}")
            raise ToolExecutionError(tool_name, f"Google token request failed: {e}") from e

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise ToolExecutionError(tool_name, "Google token response has no access_token")
        self._access_token = token
        self._expires_at = self._clock() + float(payload.get("expires_in", 3600)) - EXPIRY_MARGIN
        logger.debug("Refreshed Google access token")
