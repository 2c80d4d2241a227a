"""Schedule data model: unified items and delivery windows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Literal, Union
from zoneinfo import ZoneInfo


class ScheduleMode(str, Enum):
    """How far ahead a digest looks."""

    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class EventItem:
    """A calendar event. ``end`` is absent only if the provider omitted it."""

    title: str
    start: datetime
    end: datetime | None = None
    all_day: bool = False
    kind: Literal["event"] = field(default="event", init=False)


@dataclass(frozen=True)
class TaskItem:
    """A task with a due date. Tasks never have an end and are always all-day."""

    title: str
    start: datetime
    kind: Literal["task"] = field(default="task", init=False)

    @property
    def end(self) -> None:
        return None

    @property
    def all_day(self) -> bool:
        return True


UnifiedItem = Union[EventItem, TaskItem]


# Fetch ranges are padded past the display range so items near a day
# boundary survive the provider's own timezone conversion.
_FETCH_DAYS = {ScheduleMode.DAILY: 2, ScheduleMode.WEEKLY: 9}
_DISPLAY_SPAN = {ScheduleMode.DAILY: timedelta(hours=24), ScheduleMode.WEEKLY: timedelta(days=7)}


@dataclass(frozen=True)
class Window:
    """Fetch and display ranges for one aggregation."""

    fetch_from: datetime
    fetch_to: datetime
    display_from: datetime
    display_to: datetime
    tz: tzinfo = ZoneInfo("UTC")

    @classmethod
    def for_mode(cls, mode: ScheduleMode, now: datetime, tz: tzinfo | None = None) -> Window:
        """Build the window for *mode* around an aware *now*.

        ``fetch_from`` is local midnight of *now* in *tz*.
        """
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        tz = tz or ZoneInfo("UTC")
        local_now = now.astimezone(tz)
        fetch_from = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(
            fetch_from=fetch_from,
            fetch_to=fetch_from + timedelta(days=_FETCH_DAYS[mode]),
            display_from=now,
            display_to=now + _DISPLAY_SPAN[mode],
            tz=tz,
        )

    def displays(self, instant: datetime) -> bool:
        """Inclusive display-range check."""
        return self.display_from <= instant <= self.display_to
