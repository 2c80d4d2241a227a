"""Arq task definitions for scheduled schedule digests."""

import logging
from typing import Sequence

from arq import cron
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings, validate_settings
from app.database import async_session_maker, engine
from app.integrations.whatsapp.client import WhatsAppDispatcher
from app.models.profile import Profile
from app.schemas.schedule import ScheduleMode
from app.schemas.trigger import DirectTrigger, TriggerAction
from app.services.profiles import ProfileService
from app.services.trigger_router import TriggerRouter
from app.workers.settings import redis_settings

settings = get_settings()
logger = logging.getLogger(__name__)


async def get_db() -> AsyncSession:
    """Get database session for worker."""
    return async_session_maker()


async def deliver_digests(
    router: TriggerRouter,
    profiles: Sequence[Profile],
    mode: ScheduleMode,
) -> dict:
    """Run the direct path for every profile. One failure never stops the rest."""
    action = TriggerAction(mode.value)
    sent = 0
    failed = 0

    for profile in profiles:
        try:
            result = await router.handle_direct(DirectTrigger(action=action, user_id=profile.id))
        except Exception:
            logger.exception("Digest crashed for user %s", profile.id)
            failed += 1
            continue

        if result.ok:
            sent += 1
        else:
            logger.warning(
                "Digest for user %s not delivered: %s",
                profile.id,
                result.error.value if result.error else "unknown",
            )
            failed += 1

    logger.info("Cron: %s digests sent=%d failed=%d", mode.value, sent, failed)
    return {"sent": sent, "failed": failed}


async def _send_digests(mode: ScheduleMode) -> dict:
    db = await get_db()
    try:
        profile_service = ProfileService(db)
        profiles = await profile_service.list_deliverable()
        router = TriggerRouter(profiles=profile_service, dispatcher=WhatsAppDispatcher())
        return await deliver_digests(router, profiles, mode)
    finally:
        await db.close()


async def send_daily_digests(ctx: dict) -> dict:
    """Cron job: next-24-hours digest for every deliverable profile."""
    return await _send_digests(ScheduleMode.DAILY)


async def send_weekly_digests(ctx: dict) -> dict:
    """Cron job: next-7-days digest for every deliverable profile."""
    return await _send_digests(ScheduleMode.WEEKLY)


# ── Lifecycle ───────────────────────────────────────────────────────


async def startup(ctx: dict) -> None:
    """Worker startup hook."""
    validate_settings(settings)
    logger.info("Worker starting up...")


async def shutdown(ctx: dict) -> None:
    """Worker shutdown hook."""
    logger.info("Worker shutting down...")
    await engine.dispose()


class WorkerSettings:
    """Arq worker settings."""

    functions = [send_daily_digests, send_weekly_digests]
    cron_jobs = [
        cron(
            send_daily_digests,
            hour={settings.daily_digest_hour},
            minute={0},
        ),
        cron(
            send_weekly_digests,
            weekday={settings.weekly_digest_weekday},
            hour={settings.daily_digest_hour},
            minute={0},
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = redis_settings
    max_jobs = 10
    job_timeout = 900  # digests for every profile
    keep_result = 3600  # Keep results for 1 hour
