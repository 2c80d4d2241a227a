"""FastAPI dependencies."""

import hmac
import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.database import get_db
from app.integrations.whatsapp.client import Dispatcher, get_dispatcher
from app.services.profiles import ProfileService
from app.services.trigger_router import TriggerRouter

logger = logging.getLogger(__name__)


async def verify_trigger_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    x_trigger_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Only trusted callers may name a user directly."""
    if not x_trigger_secret or not settings.trigger_secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Trigger-Secret header is required",
        )
    if not hmac.compare_digest(x_trigger_secret.encode(), settings.trigger_secret.encode()):
        logger.warning("Direct trigger rejected: bad shared secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid trigger secret",
        )


async def get_trigger_router(
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Annotated[Dispatcher, Depends(get_dispatcher)],
) -> TriggerRouter:
    """Fresh router per request; nothing is shared across requests."""
    return TriggerRouter(profiles=ProfileService(db), dispatcher=dispatcher)


# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_settings)]
Router = Annotated[TriggerRouter, Depends(get_trigger_router)]
TrustedCaller = Depends(verify_trigger_secret)
