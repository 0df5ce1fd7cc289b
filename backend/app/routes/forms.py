"""
Form structure routes.
Reordering and deleting steps/fields; each call rewrites the affected
order values in a single transaction.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from backend.app.deps import get_form_repository
from backend.app.models.api import format_response
from backend.app.models.forms import ReorderFieldsRequest, ReorderStepsRequest
from backend.app.repositories.forms import FormRepository
from backend.app.services.auth_service import get_current_user

router = APIRouter(prefix="/api/forms", tags=["forms"])


# ── Steps ─────────────────────────────────────────────────────────

@router.patch("/{form_id}/steps/reorder")
async def reorder_steps(
    form_id: UUID,
    body: ReorderStepsRequest,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
):
    """Set step order to the position of each id in stepIds."""
    await run_in_threadpool(forms.verify_ownership, str(form_id), user["user_id"])
    ordered = await run_in_threadpool(forms.reorder_steps, str(form_id), [str(i) for i in body.step_ids])
    return format_response(ordered)


@router.delete("/{form_id}/steps/{step_id}")
async def delete_step(
    form_id: UUID,
    step_id: UUID,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
):
    await run_in_threadpool(forms.verify_ownership, str(form_id), user["user_id"])
    await run_in_threadpool(forms.delete_step, str(form_id), str(step_id))
    return format_response({"status": "deleted"})


# ── Fields ────────────────────────────────────────────────────────

@router.patch("/{form_id}/steps/{step_id}/fields/reorder")
async def reorder_fields(
    form_id: UUID,
    step_id: UUID,
    body: ReorderFieldsRequest,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
):
    await run_in_threadpool(forms.verify_ownership, str(form_id), user["user_id"])
    ordered = await run_in_threadpool(forms.reorder_fields, str(form_id), str(step_id), [str(i) for i in body.field_ids])
    return format_response(ordered)


@router.delete("/{form_id}/steps/{step_id}/fields/{field_id}")
async def delete_field(
    form_id: UUID,
    step_id: UUID,
    field_id: UUID,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
):
    await run_in_threadpool(forms.verify_ownership, str(form_id), user["user_id"])
    await run_in_threadpool(forms.delete_field, str(form_id), str(step_id), str(field_id))
    return format_response({"status": "deleted"})
