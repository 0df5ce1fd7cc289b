"""
Analytics aggregators.

Turns the append-only event log (and the submission table, for the
dashboard) into overview rates, a per-step funnel, a trailing daily
timeline and per-user dashboard totals. Every public read goes through the
AggregateCache first; store calls run in the threadpool so one request
waiting on Postgres does not block the others.
"""

import asyncio
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, Union

from fastapi.concurrency import run_in_threadpool
from pydantic import TypeAdapter

from shared_config import settings
from backend.app.models.analytics import DashboardResult, FunnelEntry, OverviewResult, TimelineEntry
from backend.app.models.events import EventKind
from backend.app.models.forms import StepSummary
from backend.app.repositories.events import EventStore
from backend.app.repositories.forms import FormRepository
from backend.app.repositories.submissions import SubmissionStore
from backend.app.services.cache import AggregateCache, cache_key

logger = logging.getLogger(__name__)

_OVERVIEW = TypeAdapter(OverviewResult)
_FUNNEL = TypeAdapter(list[FunnelEntry])
_TIMELINE = TypeAdapter(list[TimelineEntry])
_DASHBOARD = TypeAdapter(DashboardResult)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Pure computations ─────────────────────────────────────────────

def round_rate(value: float) -> float:
    """One decimal, halves rounded up (59.45 -> 59.5, -2.25 -> -2.2)."""
    return math.floor(value * 10 + 0.5) / 10


def percentage(part: int, whole: int) -> float:
    """part/whole as a rounded percentage; 0 when whole is 0."""
    if whole <= 0:
        return 0.0
    return round_rate(part * 100 / whole)


def build_overview(total_views: int, total_starts: int, total_submissions: int) -> OverviewResult:
    return OverviewResult(
        total_views=total_views,
        total_starts=total_starts,
        total_submissions=total_submissions,
        conversion_rate=percentage(total_submissions, total_views),
        start_rate=percentage(total_starts, total_views),
        completion_rate=percentage(total_submissions, total_starts),
    )


def build_funnel(
    steps: list[StepSummary],
    total_starts: int,
    completions_by_order: dict[int, int],
) -> list[FunnelEntry]:
    """
    One entry per step, in the given order.

    Step 0 is measured against START events; every later step against the
    completions of the step before it in the list (by position, not by the
    order value). The drop-off rate is not clamped and goes negative when
    completions exceed the previous population.
    """
    funnel = []
    previous = total_starts
    for step in steps:
        completions = completions_by_order.get(step.order, 0)
        funnel.append(FunnelEntry(
            step_order=step.order,
            step_title=step.title,
            completions=completions,
            drop_off_rate=percentage(previous - completions, previous),
        ))
        previous = completions
    return funnel


def utc_day(timestamp: Union[datetime, str]) -> str:
    """UTC calendar date of a stored timestamp; naive values are taken as UTC."""
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).date().isoformat()


def build_timeline(
    today: date,
    view_times: Iterable[Union[datetime, str]],
    submit_times: Iterable[Union[datetime, str]],
    days: int = 30,
) -> list[TimelineEntry]:
    """
    Exactly `days` zero-filled buckets, oldest first, ending at `today`.
    Timestamps whose day has no bucket are dropped.
    """
    window = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]
    buckets = {day: TimelineEntry(date=day) for day in window}
    for ts in view_times:
        entry = buckets.get(utc_day(ts))
        if entry is not None:
            entry.views += 1
    for ts in submit_times:
        entry = buckets.get(utc_day(ts))
        if entry is not None:
            entry.submissions += 1
    return [buckets[day] for day in sorted(buckets)]


# ── Service ───────────────────────────────────────────────────────

class AnalyticsService:
    """
    Cached aggregate reads for one form or one user.

    Ownership is not checked here; callers verify it before invoking the
    per-form reads.
    """

    def __init__(
        self,
        forms: FormRepository,
        events: EventStore,
        submissions: SubmissionStore,
        cache: AggregateCache,
        clock: Callable[[], datetime] = utcnow,
        timeline_days: int = settings.ANALYTICS_TIMELINE_DAYS,
    ):
        self.forms = forms
        self.events = events
        self.submissions = submissions
        self.cache = cache
        self.clock = clock
        self.timeline_days = timeline_days

    async def get_form_overview(self, form_id: str) -> OverviewResult:
        return await self.cache.get_or_compute(
            cache_key("overview", form_id), lambda: self._compute_overview(form_id), _OVERVIEW
        )

    async def get_form_funnel(self, form_id: str) -> list[FunnelEntry]:
        return await self.cache.get_or_compute(
            cache_key("funnel", form_id), lambda: self._compute_funnel(form_id), _FUNNEL
        )

    async def get_form_timeline(self, form_id: str) -> list[TimelineEntry]:
        return await self.cache.get_or_compute(
            cache_key("timeline", form_id), lambda: self._compute_timeline(form_id), _TIMELINE
        )

    async def get_dashboard_stats(self, user_id: str) -> DashboardResult:
        return await self.cache.get_or_compute(
            cache_key("dashboard", user_id), lambda: self._compute_dashboard(user_id), _DASHBOARD
        )

    async def _compute_overview(self, form_id: str) -> OverviewResult:
        # SUBMIT events, not submission rows: the two may diverge.
        views, starts, submits = await asyncio.gather(
            run_in_threadpool(self.events.count, form_id, EventKind.VIEW),
            run_in_threadpool(self.events.count, form_id, EventKind.START),
            run_in_threadpool(self.events.count, form_id, EventKind.SUBMIT),
        )
        return build_overview(views, starts, submits)

    async def _compute_funnel(self, form_id: str) -> list[FunnelEntry]:
        steps = await run_in_threadpool(self.forms.get_steps_ordered, form_id)
        total_starts, completions = await asyncio.gather(
            run_in_threadpool(self.events.count, form_id, EventKind.START),
            run_in_threadpool(self.events.group_count_by_step_order, form_id, EventKind.STEP_COMPLETE),
        )
        logger.debug(f"Funnel form={form_id}: {len(steps)} steps, {total_starts} starts")
        return build_funnel(steps, total_starts, completions)

    async def _compute_timeline(self, form_id: str) -> list[TimelineEntry]:
        now = self.clock()
        since = now - timedelta(days=self.timeline_days)
        views, submits = await asyncio.gather(
            run_in_threadpool(self.events.find_in_range, form_id, EventKind.VIEW, since),
            run_in_threadpool(self.events.find_in_range, form_id, EventKind.SUBMIT, since),
        )
        today = now.astimezone(timezone.utc).date()
        return build_timeline(today, views, submits, days=self.timeline_days)

    async def _compute_dashboard(self, user_id: str) -> DashboardResult:
        owned = await run_in_threadpool(self.forms.list_owned_form_ids, user_id)
        if not owned:
            return DashboardResult()

        form_ids = sorted(owned)
        # Submission rows for the total, SUBMIT events for the pooled rate.
        total_submissions, total_views, total_submits = await asyncio.gather(
            run_in_threadpool(self.submissions.count, form_ids),
            run_in_threadpool(self.events.count, form_ids, EventKind.VIEW),
            run_in_threadpool(self.events.count, form_ids, EventKind.SUBMIT),
        )
        return DashboardResult(
            total_forms=len(form_ids),
            total_submissions=total_submissions,
            total_views=total_views,
            average_conversion_rate=percentage(total_submits, total_views),
        )
