"""
Public tracking route.
POST /api/forms/{id}/events: records one interaction event, no auth.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from backend.app.deps import get_event_service
from backend.app.models.api import format_response
from backend.app.models.events import EventCreate
from backend.app.services.events_service import EventService

router = APIRouter(prefix="/api/forms", tags=["events"])


@router.post("/{form_id}/events", status_code=201)
async def create_event(
    form_id: UUID,
    payload: EventCreate,
    events: EventService = Depends(get_event_service),
):
    """Record a VIEW, START, STEP_COMPLETE, SUBMIT or ABANDON event."""
    event = await run_in_threadpool(events.record_event, str(form_id), payload)
    return format_response(event)
