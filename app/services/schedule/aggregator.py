"""Schedule aggregation: calendar events + tasks -> one ordered, windowed list."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Iterable

from app.core.errors import AuthExpired
from app.schemas.schedule import EventItem, ScheduleMode, TaskItem, UnifiedItem, Window
from app.services.schedule.calendar_source import CalendarSource
from app.services.schedule.task_source import TaskSource

logger = logging.getLogger(__name__)


def merge_items(
    events: Iterable[EventItem],
    tasks: Iterable[TaskItem],
    window: Window,
) -> list[UnifiedItem]:
    """Order by start and clip to the display range.

    ``sorted`` is stable, so at equal starts events stay ahead of tasks and
    each source keeps its provider order.
    """
    merged: list[UnifiedItem] = [*events, *tasks]
    merged = sorted(merged, key=lambda item: item.start)
    return [item for item in merged if window.displays(item.start)]


class ScheduleAggregator:
    """Fans out to the calendar and task sources and merges the result."""

    def __init__(
        self,
        calendar_source: CalendarSource | None = None,
        task_source: TaskSource | None = None,
    ) -> None:
        self.calendar_source = calendar_source or CalendarSource()
        self.task_source = task_source or TaskSource()

    async def aggregate(
        self,
        credential: str,
        mode: ScheduleMode,
        now: datetime,
        tz: tzinfo | None = None,
    ) -> list[UnifiedItem]:
        """Items starting within the display window of *mode* from *now*.

        Raises:
            AuthExpired: the calendar provider rejected *credential*.
        """
        window = Window.for_mode(mode, now, tz)

        events_result, tasks_result = await asyncio.gather(
            self.calendar_source.list_events(credential, window),
            self.task_source.list_tasks(credential, window),
            return_exceptions=True,
        )

        if isinstance(events_result, AuthExpired):
            logger.warning("Calendar credential rejected (status=%s)", events_result.status_code)
            raise events_result
        events = self._settle("calendar", events_result)
        tasks = self._settle("tasks", tasks_result)

        items = merge_items(events, tasks, window)
        logger.info(
            "Aggregated %d items (%d events, %d tasks fetched) for %s window",
            len(items),
            len(events),
            len(tasks),
            mode.value,
        )
        return items

    @staticmethod
    def _settle(source: str, result: list | BaseException) -> list:
        """Unwrap a gathered result, degrading a failed source to empty."""
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning("%s source failed, continuing without it: %r", source, result)
            return []
        return result
