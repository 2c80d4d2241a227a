"""Read-only profile lookups.

Profiles are created and edited by the dashboard. This service resolves a
user id or an inbound WhatsApp sender to a profile and lists profiles that
can receive scheduled digests.
"""

import logging
import re
from typing import Protocol, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.profile import Profile

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(address: str) -> str:
    """Digits only: WhatsApp sends ``15551234567`` for ``+1 555-123-4567``."""
    return _NON_DIGITS.sub("", address or "")


class ProfileLookup(Protocol):
    async def get_by_user_id(self, user_id: UUID) -> Profile | None: ...

    async def get_by_destination(self, address: str) -> Profile | None: ...


class ProfileService:
    """SQLAlchemy-backed profile store."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_user_id(self, user_id: UUID) -> Profile | None:
        result = await self.db.execute(select(Profile).where(Profile.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_destination(self, address: str) -> Profile | None:
        """Match a sender address against stored WhatsApp numbers."""
        digits = normalize_phone_number(address)
        if not digits:
            return None

        result = await self.db.execute(
            select(Profile)
            .where(Profile.whatsapp_number.in_([digits, f"+{digits}"]))
            .order_by(Profile.created_at)
        )
        profiles = result.scalars().all()
        if len(profiles) > 1:
            logger.warning("%d profiles share one WhatsApp number, using the oldest", len(profiles))
        return profiles[0] if profiles else None

    async def list_deliverable(self) -> Sequence[Profile]:
        """Profiles with both a destination and a Google credential."""
        result = await self.db.execute(
            select(Profile)
            .where(
                Profile.whatsapp_number.is_not(None),
                Profile.whatsapp_number != "",
                Profile.google_access_token.is_not(None),
                Profile.google_access_token != "",
            )
            .order_by(Profile.created_at)
        )
        return result.scalars().all()
