"""Render unified items into a WhatsApp-ready text message."""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from typing import Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import get_settings
from app.schemas.schedule import EventItem, ScheduleMode, TaskItem, UnifiedItem

logger = logging.getLogger(__name__)

EVENT_MARKER = "📌"
TASK_MARKER = "✅"
ALL_DAY = "All Day"

HEADERS = {
    ScheduleMode.DAILY: "📅 Today's Schedule:",
    ScheduleMode.WEEKLY: "🗓️ Weekly Overview:",
}
EMPTY_MESSAGES = {
    ScheduleMode.DAILY: "☀️ Nothing scheduled for the next 24 hours. Enjoy your free time!",
    ScheduleMode.WEEKLY: "🗓️ No events or tasks found for the next 7 days.",
}

# Fixed names so output does not depend on the process locale.
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def resolve_zone(timezone: str | tzinfo | None) -> tzinfo:
    """Return a tzinfo for *timezone*, falling back to the configured default."""
    if isinstance(timezone, tzinfo):
        return timezone
    default = get_settings().default_timezone
    if timezone:
        try:
            return ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using %s", timezone, default)
    return ZoneInfo(default)


def day_label(day: date) -> str:
    return f"{_WEEKDAYS[day.weekday()]} {day:%d/%m}"


def short_day_label(day: date) -> str:
    return f"{_WEEKDAYS[day.weekday()][:3]} {day:%d/%m}"


def time_segment(item: UnifiedItem, tz: tzinfo) -> str:
    if item.all_day:
        return ALL_DAY
    start = f"{item.start.astimezone(tz):%H:%M}"
    if item.end is None:
        return start
    return f"{start} - {item.end.astimezone(tz):%H:%M}"


def item_line(item: UnifiedItem, tz: tzinfo, day_prefix: str | None = None) -> str:
    match item:
        case EventItem():
            marker = EVENT_MARKER
        case TaskItem():
            marker = TASK_MARKER
    parts = [marker]
    if day_prefix:
        parts.append(f"({day_prefix})")
    parts.append(time_segment(item, tz))
    parts.append(item.title)
    return " ".join(parts)


def format_schedule(
    items: Sequence[UnifiedItem],
    mode: ScheduleMode,
    timezone: str | tzinfo | None = None,
    now: datetime | None = None,
) -> str:
    """Render *items* for *mode* in *timezone*.

    Weekly output groups items under one header per day. Daily output marks
    items that fall on another calendar day than *now* with a short date.
    """
    tz = resolve_zone(timezone)
    if not items:
        return EMPTY_MESSAGES[mode]

    lines = [HEADERS[mode], ""]

    if mode == ScheduleMode.WEEKLY:
        seen_days: set[date] = set()
        for item in items:
            day = item.start.astimezone(tz).date()
            if day not in seen_days:
                if seen_days:
                    lines.append("")
                seen_days.add(day)
                lines.append(f"*{day_label(day)}*")
            lines.append(item_line(item, tz))
    else:
        today = (now or datetime.now(tz)).astimezone(tz).date()
        for item in items:
            day = item.start.astimezone(tz).date()
            prefix = short_day_label(day) if day != today else None
            lines.append(item_line(item, tz, prefix))

    return "\n".join(lines)
