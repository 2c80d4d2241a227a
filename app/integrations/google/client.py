"""HTTP client for Google Calendar and Google Tasks REST APIs.

The caller supplies a bearer access token obtained by the dashboard's
sign-in flow. Token refresh is not handled here: a 401/403 surfaces as
:class:`AuthExpired` and the caller decides what to tell the user.

Usage::

    client = GoogleApiClient(access_token)
    data = await client.get(f"{base}/users/me/calendarList")
"""

from __future__ import annotations

from typing import AsyncIterator

import httpx

from app.config import get_settings
from app.core.errors import AuthExpired

_AUTH_STATUSES = (401, 403)
# 403 reasons that mean "slow down", not "credential rejected".
_RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


def _is_rate_limited(response: httpx.Response) -> bool:
    try:
        errors = response.json()["error"]["errors"]
    except (ValueError, KeyError, TypeError):
        return False
    if not isinstance(errors, list):
        return False
    return any(
        isinstance(error, dict) and error.get("reason") in _RATE_LIMIT_REASONS for error in errors
    )


class GoogleApiClient:
    """Bearer-token client bound to one user's credential."""

    def __init__(
        self,
        access_token: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._access_token = access_token
        self.timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self._transport = transport

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }

    async def get(self, url: str, params: dict | None = None) -> dict:
        """GET *url* and return the decoded JSON body.

        Raises:
            AuthExpired: on HTTP 401/403, except a rate-limit 403.
            httpx.HTTPStatusError: on any other non-2xx status, rate-limit 403 included.
            httpx.TimeoutException: when the provider does not answer in time.
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(url, headers=self._headers, params=params)

        if response.status_code in _AUTH_STATUSES and not _is_rate_limited(response):
            raise AuthExpired(
                f"Google rejected the credential ({response.status_code})",
                status_code=response.status_code,
            )
        response.raise_for_status()
        return response.json()

    async def paginate(self, url: str, params: dict | None = None) -> AsyncIterator[dict]:
        """Yield every ``items`` entry across ``nextPageToken`` pages."""
        page_params = dict(params or {})
        while True:
            data = await self.get(url, params=page_params)
            for item in data.get("items", []):
                yield item
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            page_params["pageToken"] = page_token
