"""
Event recording for the public tracking endpoint.
"""

import logging

from backend.app.models.events import EventCreate, EventKind, EventRecord
from backend.app.repositories.events import EventStore
from backend.app.repositories.forms import FormRepository

logger = logging.getLogger(__name__)


class EventService:

    def __init__(self, forms: FormRepository, events: EventStore):
        self.forms = forms
        self.events = events

    def record_event(self, form_id: str, payload: EventCreate) -> EventRecord:
        """
        Append one tracking event to a live form.

        For STEP_COMPLETE the step id is resolved to the step's current
        order. A step that no longer exists leaves step_order empty instead
        of failing the request.
        """
        self.forms.ensure_exists(form_id)

        step_order = None
        if payload.type == EventKind.STEP_COMPLETE and payload.step_id is not None:
            step_order = self.forms.find_step_order(form_id, str(payload.step_id))
            if step_order is None:
                logger.warning(f"Unknown step={payload.step_id} on form={form_id}, recording without step order")

        row = self.events.record(
            form_id,
            payload.type,
            payload.session_id,
            step_order=step_order,
            metadata=payload.metadata,
        )
        logger.info(f"Event recorded: form={form_id} type={payload.type.value} session={payload.session_id}")

        return EventRecord(
            id=str(row["id"]),
            type=EventKind(row["type"]),
            session_id=row["session_id"],
            step_order=row.get("step_order"),
            created_at=row["created_at"],
        )
