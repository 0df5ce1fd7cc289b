"""
Submission creation and retrieval.
Required fields are checked against the form's current field set at
write time.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from backend.app.errors import AppError
from backend.app.models.forms import FieldRequirement, FormStatus
from backend.app.models.submissions import SubmissionCreate, SubmissionRecord
from backend.app.repositories.forms import FormRepository
from backend.app.repositories.submissions import SubmissionStore

logger = logging.getLogger(__name__)


def is_blank(value: Any) -> bool:
    """None, "" and an empty list count as no answer; 0 and False do not."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def find_missing_fields(fields: Iterable[FieldRequirement], data: Mapping[str, Any]) -> list[str]:
    """Labels of required fields without a usable value, in field order."""
    return [f.label for f in fields if f.required and is_blank(data.get(f.id))]


def _to_record(row: dict) -> SubmissionRecord:
    return SubmissionRecord(
        id=str(row["id"]),
        form_id=str(row["form_id"]),
        data=row["data"],
        metadata=row.get("metadata"),
        completed_at=row["completed_at"],
        created_at=row["created_at"],
    )


class SubmissionService:

    def __init__(
        self,
        forms: FormRepository,
        submissions: SubmissionStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.forms = forms
        self.submissions = submissions
        self.clock = clock

    def create_submission(self, form_id: str, payload: SubmissionCreate) -> SubmissionRecord:
        schema = self.forms.get_form_schema(form_id)
        if schema.status != FormStatus.PUBLISHED:
            raise AppError.validation("This form does not accept submissions")

        missing = find_missing_fields(schema.fields, payload.data)
        if missing:
            raise AppError.validation(
                f"Missing required fields: {', '.join(missing)}",
                details={"missingFields": missing},
            )

        row = self.submissions.create(
            form_id,
            payload.data,
            {"sessionId": payload.session_id},
            self.clock(),
        )
        logger.info(f"Submission created: form={form_id} session={payload.session_id}")
        return _to_record(row)

    def list_submissions(self, form_id: str, page: int, limit: int) -> tuple[list[SubmissionRecord], int]:
        rows, total = self.submissions.list_page(form_id, page, limit)
        return [_to_record(r) for r in rows], total

    def get_submission(self, form_id: str, submission_id: str) -> SubmissionRecord:
        row = self.submissions.get(form_id, submission_id)
        if row is None:
            raise AppError.not_found("Submission not found")
        return _to_record(row)
