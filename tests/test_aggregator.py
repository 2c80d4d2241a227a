"""Tests for schedule aggregation: merge order, window clipping, failure policy."""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import httpx
import pytest

from app.core.errors import AuthExpired
from app.schemas.schedule import ScheduleMode, Window
from app.services.schedule.aggregator import ScheduleAggregator, merge_items
from app.services.schedule.calendar_source import CalendarSource
from app.services.schedule.formatter import format_schedule
from app.services.schedule.task_source import TaskSource

from tests.factories import NOW, at, client_factory, event, google_event, task

UTC = timezone.utc


def _aggregator(events=None, tasks=None, events_error=None, tasks_error=None) -> ScheduleAggregator:
    calendar_source = MagicMock()
    calendar_source.list_events = AsyncMock(return_value=events or [], side_effect=events_error)
    task_source = MagicMock()
    task_source.list_tasks = AsyncMock(return_value=tasks or [], side_effect=tasks_error)
    return ScheduleAggregator(calendar_source=calendar_source, task_source=task_source)


# ─── Window ──────────────────────────────────────────────────────────────────

class TestWindow:
    def test_daily_ranges(self):
        window = Window.for_mode(ScheduleMode.DAILY, NOW, UTC)
        assert window.fetch_from == datetime(2024, 1, 1, tzinfo=UTC)
        assert window.fetch_to == datetime(2024, 1, 3, tzinfo=UTC)
        assert window.display_from == NOW
        assert window.display_to == NOW + timedelta(hours=24)

    def test_weekly_ranges(self):
        window = Window.for_mode(ScheduleMode.WEEKLY, NOW, UTC)
        assert window.fetch_to == datetime(2024, 1, 10, tzinfo=UTC)
        assert window.display_to == NOW + timedelta(days=7)

    def test_fetch_starts_at_local_midnight(self):
        paris = ZoneInfo("Europe/Paris")
        # 23:30 UTC on Jan 1 is already Jan 2 in Paris
        window = Window.for_mode(ScheduleMode.DAILY, datetime(2024, 1, 1, 23, 30, tzinfo=UTC), paris)
        assert window.fetch_from == datetime(2024, 1, 2, tzinfo=paris)

    def test_naive_now_rejected(self):
        with pytest.raises(ValueError):
            Window.for_mode(ScheduleMode.DAILY, datetime(2024, 1, 1, 6, 0))


# ─── Merge ordering ──────────────────────────────────────────────────────────

class TestMergeItems:
    window = Window.for_mode(ScheduleMode.WEEKLY, NOW, UTC)

    def test_sorted_by_start(self):
        events = [event("late", at(hours=5)), event("early", at(hours=1))]
        tasks = [task("middle", at(hours=3))]

        merged = merge_items(events, tasks, self.window)

        assert [i.title for i in merged] == ["early", "middle", "late"]
        starts = [i.start for i in merged]
        assert starts == sorted(starts)

    def test_events_precede_tasks_at_equal_start(self):
        same = at(hours=2)
        events = [event("e1", same), event("e2", same)]
        tasks = [task("t0", at(hours=1)), task("t1", same), task("t2", same)]

        merged = merge_items(events, tasks, self.window)

        assert [i.title for i in merged] == ["t0", "e1", "e2", "t1", "t2"]

    def test_provider_order_kept_within_source(self):
        same = at(hours=4)
        events = [event(f"e{n}", same) for n in range(5)]

        merged = merge_items(events, [], self.window)

        assert [i.title for i in merged] == ["e0", "e1", "e2", "e3", "e4"]

    def test_mixed_timezones_compare_as_instants(self):
        tokyo = ZoneInfo("Asia/Tokyo")
        events = [event("tokyo", datetime(2024, 1, 1, 16, 0, tzinfo=tokyo))]  # 07:00Z
        tasks = [task("utc", at(minutes=30))]  # 06:30Z

        merged = merge_items(events, tasks, self.window)

        assert [i.title for i in merged] == ["utc", "tokyo"]


# ─── Display window clipping ─────────────────────────────────────────────────

class TestDisplayWindow:
    def test_daily_boundaries(self):
        window = Window.for_mode(ScheduleMode.DAILY, NOW, UTC)
        items = [
            event("before", at(seconds=-1)),
            event("at-now", at()),
            event("almost", at(hours=23, minutes=59)),
            event("at-end", at(hours=24)),
            event("after", at(hours=24, seconds=1)),
        ]

        kept = [i.title for i in merge_items(items, [], window)]

        assert kept == ["at-now", "almost", "at-end"]

    def test_weekly_boundaries(self):
        window = Window.for_mode(ScheduleMode.WEEKLY, NOW, UTC)
        items = [
            task("before", at(seconds=-1)),
            task("inside", at(days=6, hours=23, minutes=59)),
            task("at-end", at(days=7)),
            task("after", at(days=7, seconds=1)),
        ]

        kept = [i.title for i in merge_items([], items, window)]

        assert kept == ["inside", "at-end"]


# ─── Aggregator ──────────────────────────────────────────────────────────────

class TestScheduleAggregator:
    @pytest.mark.asyncio
    async def test_daily_excludes_buffer_zone(self):
        aggregator = _aggregator(
            events=[event("yesterday-ish", at(hours=-2)), event("soon", at(hours=1))],
            tasks=[task("tomorrow-evening", at(hours=30))],
        )

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)

        assert [i.title for i in items] == ["soon"]

    @pytest.mark.asyncio
    async def test_sources_receive_same_window(self):
        aggregator = _aggregator()

        await aggregator.aggregate("tok", ScheduleMode.WEEKLY, NOW, UTC)

        (cred, window), _ = aggregator.calendar_source.list_events.call_args
        (task_cred, task_window), _ = aggregator.task_source.list_tasks.call_args
        assert cred == task_cred == "tok"
        assert window == task_window
        assert window.display_to == NOW + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_task_subsystem_failure_is_swallowed(self):
        aggregator = _aggregator(
            events=[event("meeting", at(hours=1))],
            tasks_error=httpx.ConnectError("tasks down"),
        )

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)

        assert [i.title for i in items] == ["meeting"]

    @pytest.mark.asyncio
    async def test_task_auth_failure_is_swallowed(self):
        aggregator = _aggregator(
            events=[event("meeting", at(hours=1))],
            tasks_error=AuthExpired(status_code=403),
        )

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)

        assert [i.title for i in items] == ["meeting"]

    @pytest.mark.asyncio
    async def test_non_auth_calendar_failure_degrades_to_tasks_only(self):
        aggregator = _aggregator(
            events_error=httpx.ReadTimeout("slow"),
            tasks=[task("pay rent", at(hours=12))],
        )

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)

        assert [i.title for i in items] == ["pay rent"]

    @pytest.mark.asyncio
    async def test_auth_failure_propagates_even_with_nothing_to_show(self):
        aggregator = _aggregator(events_error=AuthExpired(status_code=401))

        with pytest.raises(AuthExpired):
            await aggregator.aggregate("dead", ScheduleMode.DAILY, NOW, UTC)

    @pytest.mark.asyncio
    async def test_empty_schedule_is_a_successful_empty_result(self):
        aggregator = _aggregator()

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)

        assert items == []

    @pytest.mark.asyncio
    async def test_calendar_and_task_sources_run_concurrently(self):
        delay = 0.2

        async def slow_events(credential, window):
            await asyncio.sleep(delay)
            return [event("meeting", at(hours=1))]

        async def slow_tasks(credential, window):
            await asyncio.sleep(delay)
            return [task("pay rent", at(hours=12))]

        aggregator = _aggregator()
        aggregator.calendar_source.list_events = slow_events
        aggregator.task_source.list_tasks = slow_tasks

        started = time.perf_counter()
        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)
        elapsed = time.perf_counter() - started

        assert [i.title for i in items] == ["meeting", "pay rent"]
        assert elapsed < delay * 1.75


# ─── Against the HTTP sources ────────────────────────────────────────────────

def _google(calendars: dict, task_lists: dict, status: dict | None = None):
    """Fake Google Calendar + Tasks; *status* forces a status per path suffix."""
    status = status or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        for suffix, code in status.items():
            if path.endswith(suffix):
                return httpx.Response(code, json={"error": {"code": code}})
        if path.endswith("/users/me/calendarList"):
            return httpx.Response(200, json={"items": [{"id": c} for c in calendars]})
        if path.endswith("/users/@me/lists"):
            return httpx.Response(200, json={"items": [{"id": t} for t in task_lists]})
        for cal_id, events in calendars.items():
            if path.endswith(f"/calendars/{cal_id}/events"):
                return httpx.Response(200, json={"items": events})
        for list_id, tasks in task_lists.items():
            if path.endswith(f"/lists/{list_id}/tasks"):
                return httpx.Response(200, json={"items": tasks})
        return httpx.Response(404, json={})

    factory = client_factory(handler)
    return ScheduleAggregator(
        calendar_source=CalendarSource(client_factory=factory),
        task_source=TaskSource(client_factory=factory),
    )


class TestEndToEnd:
    CALENDARS = {
        "primary": [google_event("workout", "2024-01-01T07:00:00Z", "2024-01-01T08:00:00Z")],
        "work": [google_event("meeting", "2024-01-01T09:30:00Z", "2024-01-01T11:00:00Z")],
    }
    TASK_LISTS = {
        "inbox": [{"title": "pay rent", "due": "2024-01-01T18:00:00.000Z"}],
    }

    @pytest.mark.asyncio
    async def test_daily_digest_scenario(self):
        aggregator = _google(self.CALENDARS, self.TASK_LISTS)

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)
        text = format_schedule(items, ScheduleMode.DAILY, UTC, now=NOW)

        assert [i.title for i in items] == ["workout", "meeting", "pay rent"]
        assert text.splitlines()[2:] == [
            "📌 07:00 - 08:00 workout",
            "📌 09:30 - 11:00 meeting",
            "✅ All Day pay rent",
        ]

    @pytest.mark.asyncio
    async def test_one_of_three_calendars_failing(self):
        calendars = dict(self.CALENDARS)
        calendars["broken"] = [google_event("never", "2024-01-01T08:00:00Z", "2024-01-01T09:00:00Z")]
        aggregator = _google(calendars, {}, status={"/calendars/broken/events": 500})

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)

        assert [i.title for i in items] == ["workout", "meeting"]

    @pytest.mark.asyncio
    async def test_primary_401_is_auth_expired_not_empty(self):
        aggregator = _google({}, self.TASK_LISTS, status={"/users/me/calendarList": 401})

        with pytest.raises(AuthExpired):
            await aggregator.aggregate("dead", ScheduleMode.DAILY, NOW, UTC)

    @pytest.mark.asyncio
    async def test_tasks_without_scope_still_returns_events(self):
        aggregator = _google(self.CALENDARS, {}, status={"/users/@me/lists": 403})

        items = await aggregator.aggregate("tok", ScheduleMode.DAILY, NOW, UTC)

        assert [i.title for i in items] == ["workout", "meeting"]
