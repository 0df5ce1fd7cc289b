"""
Analytics routes for the form owner's dashboard.
GET /api/analytics/forms/{id}/overview|funnel|timeline, GET /api/analytics/dashboard
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from backend.app.deps import get_analytics_service, get_form_repository
from backend.app.models.api import format_response
from backend.app.repositories.forms import FormRepository
from backend.app.services.analytics_service import AnalyticsService
from backend.app.services.auth_service import get_current_user

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


async def _owned_form(form_id: UUID, user: dict, forms: FormRepository) -> str:
    await run_in_threadpool(forms.verify_ownership, str(form_id), user["user_id"])
    return str(form_id)


@router.get("/forms/{form_id}/overview")
async def get_form_overview(
    form_id: UUID,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Views, starts, submissions and the derived conversion rates."""
    fid = await _owned_form(form_id, user, forms)
    return format_response(await analytics.get_form_overview(fid))


@router.get("/forms/{form_id}/funnel")
async def get_form_funnel(
    form_id: UUID,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Per-step completions and drop-off rates."""
    fid = await _owned_form(form_id, user, forms)
    return format_response(await analytics.get_form_funnel(fid))


@router.get("/forms/{form_id}/timeline")
async def get_form_timeline(
    form_id: UUID,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Daily views and submissions over the trailing window."""
    fid = await _owned_form(form_id, user, forms)
    return format_response(await analytics.get_form_timeline(fid))


@router.get("/dashboard")
async def get_dashboard_stats(
    user: dict = Depends(get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Totals across all of the caller's forms."""
    return format_response(await analytics.get_dashboard_stats(user["user_id"]))
