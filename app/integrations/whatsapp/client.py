"""WhatsApp Cloud API dispatcher.

Sends plain-text messages through the Graph API::

    POST {WHATSAPP_API_URL}/{WHATSAPP_PHONE_NUMBER_ID}/messages
    {"messaging_product": "whatsapp", "to": "...", "type": "text",
     "text": {"body": "..."}}

A refused or failed send is returned as a non-accepted
:class:`DispatchResult` carrying the provider's payload, never raised.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from app.config import get_settings
from app.schemas.trigger import DispatchResult

logger = logging.getLogger(__name__)


@runtime_checkable
class Dispatcher(Protocol):
    """Anything that can deliver a text message to an address."""

    async def send(self, to: str, text: str) -> DispatchResult: ...


class WhatsAppDispatcher:
    """Dispatcher backed by the WhatsApp Cloud API."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        self.api_url = settings.whatsapp_api_url.rstrip("/")
        self.phone_number_id = settings.whatsapp_phone_number_id
        self.api_key = settings.whatsapp_api_key
        self.timeout = settings.provider_timeout_seconds
        self._transport = transport

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def send(self, to: str, text: str) -> DispatchResult:
        url = f"{self.api_url}/{self.phone_number_id}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            logger.error("WhatsApp send failed before a response: %s", e)
            return DispatchResult(accepted=False, details=str(e))

        if response.is_success:
            data = response.json()
            messages = data.get("messages") or [{}]
            return DispatchResult(
                accepted=True,
                message_id=messages[0].get("id"),
                status_code=response.status_code,
            )

        try:
            details: dict | str = response.json()
        except ValueError:
            details = response.text
        logger.error("WhatsApp rejected message (status=%d)", response.status_code)
        return DispatchResult(
            accepted=False,
            status_code=response.status_code,
            details=details,
        )


def get_dispatcher() -> Dispatcher:
    """FastAPI dependency returning the configured dispatcher."""
    return WhatsAppDispatcher()
