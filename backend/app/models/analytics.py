"""
Result shapes returned by the analytics aggregators.
"""

from backend.app.models.base import CamelModel


class OverviewResult(CamelModel):
    total_views: int = 0
    total_starts: int = 0
    total_submissions: int = 0
    conversion_rate: float = 0
    start_rate: float = 0
    completion_rate: float = 0


class FunnelEntry(CamelModel):
    step_order: int
    step_title: str
    completions: int
    drop_off_rate: float


class TimelineEntry(CamelModel):
    date: str
    submissions: int = 0
    views: int = 0


class DashboardResult(CamelModel):
    """
    Per-user totals across all owned, non-deleted forms.

    average_conversion_rate is a pooled rate (all SUBMIT events divided by
    all VIEW events), not the mean of the per-form conversion rates.
    """
    total_forms: int = 0
    total_submissions: int = 0
    total_views: int = 0
    average_conversion_rate: float = 0
