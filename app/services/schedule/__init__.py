"""
Schedule services package.

Services:
- calendar_source: Events from every Google calendar on the account
- task_source: Due-dated tasks from every Google task list
- aggregator: Concurrent fan-out, merge, ordering and display-window clipping
- formatter: Daily/weekly WhatsApp message rendering
"""

from app.services.schedule.calendar_source import CalendarSource
from app.services.schedule.task_source import TaskSource
from app.services.schedule.aggregator import ScheduleAggregator, merge_items
from app.services.schedule.formatter import format_schedule

__all__ = [
    "CalendarSource",
    "TaskSource",
    "ScheduleAggregator",
    "merge_items",
    "format_schedule",
]
