"""
Submission store: completed form responses, insert-only.
"""

from datetime import datetime
from typing import Any, Optional

from backend.app.db.postgres_client import Database
from backend.app.repositories.events import FormIds, scope_to_forms

SUBMISSION_COLUMNS = "id, form_id, data, metadata, completed_at, created_at"


class SubmissionStore:

    def __init__(self, db: Database):
        self.db = db

    def create(self, form_id: str, data: dict[str, Any], metadata: dict[str, Any], completed_at: datetime) -> dict:
        result = self.db.table("submissions").insert({
            "form_id": form_id,
            "data": data,
            "metadata": metadata,
            "completed_at": completed_at,
        }).execute()
        return result.data[0]

    def count(self, form_id: FormIds) -> int:
        return scope_to_forms(self.db.table("submissions"), form_id).count()

    def list_page(self, form_id: str, page: int, limit: int) -> tuple[list[dict], int]:
        """One page of submissions, newest first, plus the total count."""
        start = (page - 1) * limit
        rows = self.db.table("submissions").select(SUBMISSION_COLUMNS).eq(
            "form_id", form_id
        ).order("created_at", desc=True).range(start, start + limit - 1).execute()
        return rows.data, self.count(form_id)

    def get(self, form_id: str, submission_id: str) -> Optional[dict]:
        result = self.db.table("submissions").select(SUBMISSION_COLUMNS).eq(
            "id", submission_id
        ).eq("form_id", form_id).execute()
        return result.data[0] if result.data else None
