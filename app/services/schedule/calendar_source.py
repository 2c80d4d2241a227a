"""Google Calendar source.

Enumerates every calendar on the account, then fetches events from each
calendar concurrently. A failure on one calendar is logged and skipped;
sibling calendars are unaffected. The calendar-list call doubles as the
credential check: a 401/403 there means the whole token is dead and
:class:`AuthExpired` propagates.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, tzinfo
from typing import Callable
from urllib.parse import quote

from app.config import get_settings
from app.core.errors import TransientSourceFailure
from app.integrations.google.client import GoogleApiClient
from app.schemas.schedule import EventItem, Window

logger = logging.getLogger(__name__)

UNTITLED = "(No title)"

ClientFactory = Callable[[str], GoogleApiClient]


def parse_provider_time(value: str, tz: tzinfo) -> tuple[datetime, bool]:
    """Parse a Google date or date-time.

    Returns ``(instant, has_time)``. Date-only values become local midnight
    in *tz*; naive date-times are read in *tz*.
    """
    if "T" in value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed, True
    return datetime.combine(date.fromisoformat(value), time.min, tzinfo=tz), False


def event_from_google(event: dict, tz: tzinfo) -> EventItem | None:
    """Convert a Google Calendar event; ``None`` for cancelled or undated ones."""
    if event.get("status") == "cancelled":
        return None

    start = event.get("start") or {}
    raw_start = start.get("dateTime") or start.get("date")
    if not raw_start:
        return None
    starts_at, has_time = parse_provider_time(raw_start, tz)

    end = event.get("end") or {}
    raw_end = end.get("dateTime") or end.get("date")
    ends_at = parse_provider_time(raw_end, tz)[0] if raw_end else None

    return EventItem(
        title=event.get("summary") or UNTITLED,
        start=starts_at,
        end=ends_at,
        all_day=not has_time,
    )


class CalendarSource:
    """Events from every calendar a user can see."""

    def __init__(
        self,
        client_factory: ClientFactory = GoogleApiClient,
        base_url: str | None = None,
        container_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self.client_factory = client_factory
        self.base_url = (base_url or settings.google_calendar_api_url).rstrip("/")
        self.container_timeout = container_timeout or settings.provider_timeout_seconds

    async def list_calendars(self, client: GoogleApiClient) -> list[str]:
        """Ids of every calendar on the account, in provider order."""
        return [
            entry["id"]
            async for entry in client.paginate(f"{self.base_url}/users/me/calendarList")
            if entry.get("id") and not entry.get("deleted")
        ]

    async def list_events(self, credential: str, window: Window) -> list[EventItem]:
        """Events from all calendars within the fetch range of *window*.

        Calendars are concatenated in calendar-list order; each calendar keeps
        the provider's own (start-time) order.
        """
        client = self.client_factory(credential)
        calendar_ids = await self.list_calendars(client)

        results = await asyncio.gather(
            *(self._fetch_calendar(client, calendar_id, window) for calendar_id in calendar_ids)
        )

        events: list[EventItem] = []
        for items, failure in results:
            if failure:
                logger.warning("Skipping calendar %s: %r", failure.container_id, failure.cause)
                continue
            events.extend(items)

        logger.info("Fetched %d events from %d calendars", len(events), len(calendar_ids))
        return events

    async def _fetch_calendar(
        self,
        client: GoogleApiClient,
        calendar_id: str,
        window: Window,
    ) -> tuple[list[EventItem], TransientSourceFailure | None]:
        try:
            items = await asyncio.wait_for(
                self._list_calendar_events(client, calendar_id, window),
                timeout=self.container_timeout,
            )
        except Exception as e:
            return [], TransientSourceFailure(calendar_id, e)
        return items, None

    async def _list_calendar_events(
        self,
        client: GoogleApiClient,
        calendar_id: str,
        window: Window,
    ) -> list[EventItem]:
        url = f"{self.base_url}/calendars/{quote(calendar_id, safe='')}/events"
        params = {
            "timeMin": window.fetch_from.isoformat(),
            "timeMax": window.fetch_to.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 250,
        }
        items = []
        async for raw in client.paginate(url, params=params):
            item = event_from_google(raw, window.tz)
            if item is not None:
                items.append(item)
        return items
