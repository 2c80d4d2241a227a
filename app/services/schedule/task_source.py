"""Google Tasks source.

Same shape as the calendar source: enumerate task lists, then fetch each
list concurrently with per-list failure containment. Only tasks with a due
date are returned.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta, tzinfo
from urllib.parse import quote

from app.config import get_settings
from app.core.errors import TransientSourceFailure
from app.integrations.google.client import GoogleApiClient
from app.schemas.schedule import TaskItem, Window
from app.services.schedule.calendar_source import UNTITLED, ClientFactory, parse_provider_time

logger = logging.getLogger(__name__)


def task_from_google(task: dict, tz: tzinfo) -> TaskItem | None:
    """Convert a Google task; ``None`` when it has no due date.

    Google stores a due date as midnight UTC of that date, so a midnight-UTC
    ``due`` is read as the date itself, at local midnight in *tz*.
    """
    due = task.get("due")
    if not due or task.get("deleted"):
        return None
    starts_at, _ = parse_provider_time(due, tz)
    if starts_at.utcoffset() == timedelta(0) and starts_at.time() == time.min:
        starts_at = datetime.combine(starts_at.date(), time.min, tzinfo=tz)
    return TaskItem(title=task.get("title") or UNTITLED, start=starts_at)


class TaskSource:
    """Due-dated tasks from every task list a user owns."""

    def __init__(
        self,
        client_factory: ClientFactory = GoogleApiClient,
        base_url: str | None = None,
        container_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self.client_factory = client_factory
        self.base_url = (base_url or settings.google_tasks_api_url).rstrip("/")
        self.container_timeout = container_timeout or settings.provider_timeout_seconds

    async def list_task_lists(self, client: GoogleApiClient) -> list[str]:
        return [
            entry["id"]
            async for entry in client.paginate(f"{self.base_url}/users/@me/lists")
            if entry.get("id")
        ]

    async def list_tasks(self, credential: str, window: Window) -> list[TaskItem]:
        client = self.client_factory(credential)
        list_ids = await self.list_task_lists(client)

        results = await asyncio.gather(
            *(self._fetch_list(client, list_id, window) for list_id in list_ids)
        )

        tasks: list[TaskItem] = []
        for items, failure in results:
            if failure:
                logger.warning("Skipping task list %s: %r", failure.container_id, failure.cause)
                continue
            tasks.extend(items)

        logger.info("Fetched %d due tasks from %d task lists", len(tasks), len(list_ids))
        return tasks

    async def _fetch_list(
        self,
        client: GoogleApiClient,
        list_id: str,
        window: Window,
    ) -> tuple[list[TaskItem], TransientSourceFailure | None]:
        try:
            items = await asyncio.wait_for(
                self._list_due_tasks(client, list_id, window),
                timeout=self.container_timeout,
            )
        except Exception as e:
            return [], TransientSourceFailure(list_id, e)
        return items, None

    async def _list_due_tasks(
        self,
        client: GoogleApiClient,
        list_id: str,
        window: Window,
    ) -> list[TaskItem]:
        url = f"{self.base_url}/lists/{quote(list_id, safe='')}/tasks"
        params = {
            "dueMin": window.fetch_from.isoformat(),
            "dueMax": window.fetch_to.isoformat(),
            "showCompleted": "false",
            "showHidden": "false",
            "maxResults": 100,
        }
        items = []
        async for raw in client.paginate(url, params=params):
            item = task_from_google(raw, window.tz)
            if item is not None:
                items.append(item)
        return items
