"""
Event store: append-only log of form interaction events.
"""

from datetime import datetime
from typing import Any, Iterable, Optional, Union

from backend.app.db.postgres_client import Database, QueryBuilder
from backend.app.models.events import EventKind

FormIds = Union[str, Iterable[str]]


def scope_to_forms(query: QueryBuilder, form_id: FormIds) -> QueryBuilder:
    """Filter by one form id or by a collection of them."""
    if isinstance(form_id, str):
        return query.eq("form_id", form_id)
    return query.in_("form_id", form_id)


class EventStore:

    def __init__(self, db: Database):
        self.db = db

    def record(
        self,
        form_id: str,
        kind: EventKind,
        session_id: str,
        step_order: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict:
        """Append one event. created_at is assigned by the database."""
        row = {
            "form_id": form_id,
            "type": kind.value,
            "session_id": session_id,
            "step_order": step_order,
        }
        if metadata is not None:
            row["metadata"] = metadata
        result = self.db.table("events").insert(row).execute()
        return result.data[0]

    def count(self, form_id: FormIds, kind: EventKind, step_order: Optional[int] = None) -> int:
        query = scope_to_forms(self.db.table("events"), form_id).eq("type", kind.value)
        if step_order is not None:
            query = query.eq("step_order", step_order)
        return query.count()

    def group_count_by_step_order(self, form_id: str, kind: EventKind) -> dict[int, int]:
        """{step_order: count}; events without a step order are left out."""
        query = self.db.table("events").eq("form_id", form_id).eq("type", kind.value).not_null("step_order")
        return query.group_count("step_order")

    def find_in_range(self, form_id: str, kind: EventKind, from_timestamp: datetime) -> list[datetime]:
        """Creation timestamps of matching events at or after from_timestamp."""
        result = self.db.table("events").select("created_at").eq("form_id", form_id).eq(
            "type", kind.value
        ).gte("created_at", from_timestamp).execute()
        return [row["created_at"] for row in result.data]
