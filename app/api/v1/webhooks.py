"""WhatsApp webhooks endpoint."""

import hmac
import logging

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from app.deps import AppSettings, Router
from app.services.trigger_router import parse_inbound_envelope

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/whatsapp", response_class=PlainTextResponse)
async def whatsapp_handshake(
    settings: AppSettings,
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
) -> str:
    """Answer Meta's subscription check by echoing the challenge."""
    token_ok = bool(
        hub_verify_token
        and settings.whatsapp_verify_token
        and hmac.compare_digest(hub_verify_token.encode(), settings.whatsapp_verify_token.encode())
    )
    if hub_mode != "subscribe" or not token_ok or hub_challenge is None:
        logger.warning("WhatsApp webhook verification rejected (mode=%s)", hub_mode)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Verification failed",
        )
    logger.info("WhatsApp webhook verified")
    return hub_challenge


@router.post("/whatsapp")
async def whatsapp_webhook(request: Request, trigger_router: Router) -> dict:
    """Handle an inbound WhatsApp message.

    Always answers 200 once the body is readable: Meta retries anything
    else, and every outcome is already reported to the sender.
    """
    try:
        body = await request.json()
    except ValueError:
        logger.error("Invalid webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )

    message = parse_inbound_envelope(body) if isinstance(body, dict) else None
    if message is None:
        logger.debug("Ignoring webhook without a text message")
        return {"status": "ignored"}

    result = await trigger_router.handle_inbound(message)
    return result.model_dump(mode="json")
