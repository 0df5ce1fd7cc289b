"""
Submission routes.
POST is public; listing and reading require the form owner's token.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from backend.app.deps import get_form_repository, get_submission_service
from backend.app.models.api import format_paginated_response, format_response
from backend.app.models.submissions import SubmissionCreate
from backend.app.repositories.forms import FormRepository
from backend.app.services.auth_service import get_current_user
from backend.app.services.submissions_service import SubmissionService

router = APIRouter(prefix="/api/forms", tags=["submissions"])


@router.post("/{form_id}/submissions", status_code=201)
async def create_submission(
    form_id: UUID,
    payload: SubmissionCreate,
    submissions: SubmissionService = Depends(get_submission_service),
):
    """Submit a response to a published form."""
    submission = await run_in_threadpool(submissions.create_submission, str(form_id), payload)
    return format_response(submission)


@router.get("/{form_id}/submissions")
async def list_submissions(
    form_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
    submissions: SubmissionService = Depends(get_submission_service),
):
    """Newest submissions first."""
    await run_in_threadpool(forms.verify_ownership, str(form_id), user["user_id"])
    items, total = await run_in_threadpool(submissions.list_submissions, str(form_id), page, limit)
    return format_paginated_response(items, total, page, limit)


@router.get("/{form_id}/submissions/{submission_id}")
async def get_submission(
    form_id: UUID,
    submission_id: UUID,
    user: dict = Depends(get_current_user),
    forms: FormRepository = Depends(get_form_repository),
    submissions: SubmissionService = Depends(get_submission_service),
):
    await run_in_threadpool(forms.verify_ownership, str(form_id), user["user_id"])
    submission = await run_in_threadpool(submissions.get_submission, str(form_id), str(submission_id))
    return format_response(submission)
