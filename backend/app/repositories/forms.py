"""
Form structure repository.
Read-side lookups used by aggregation and validation, plus the atomic
reindexing operations that keep step/field order dense.
"""

import logging
from typing import Optional

from backend.app.db.postgres_client import Database, Transaction
from backend.app.errors import AppError
from backend.app.models.forms import (
    FieldRequirement,
    FormOwner,
    FormSchema,
    OrderedItem,
    StepSummary,
)

logger = logging.getLogger(__name__)

FORM_NOT_FOUND = "Form not found"
STEP_NOT_FOUND = "Step not found"
FIELD_NOT_FOUND = "Field not found"


class FormRepository:
    """Forms, steps and fields as stored in PostgreSQL."""

    def __init__(self, db: Database):
        self.db = db

    def _active_form(self, form_id: str, columns: str = "id") -> dict:
        result = self.db.table("forms").select(columns).eq("id", form_id).is_null("deleted_at").execute()
        if not result.data:
            raise AppError.not_found(FORM_NOT_FOUND)
        return result.data[0]

    def ensure_exists(self, form_id: str) -> None:
        self._active_form(form_id)

    def get_steps_ordered(self, form_id: str) -> list[StepSummary]:
        """Steps of a live form in ascending order. NotFound if missing or deleted."""
        self._active_form(form_id)
        result = self.db.table("form_steps").select('"order", title').eq(
            "form_id", form_id
        ).order('"order"').execute()
        return [StepSummary(order=row["order"], title=row["title"]) for row in result.data]

    def list_owned_form_ids(self, user_id: str) -> set[str]:
        result = self.db.table("forms").select("id").eq("user_id", user_id).is_null("deleted_at").execute()
        return {str(row["id"]) for row in result.data}

    def verify_ownership(self, form_id: str, user_id: str) -> FormOwner:
        form = self._active_form(form_id, "id, user_id")
        if str(form["user_id"]) != str(user_id):
            raise AppError.forbidden("Access to this form is forbidden")
        return FormOwner(id=str(form["id"]), user_id=str(form["user_id"]))

    def get_form_schema(self, form_id: str) -> FormSchema:
        """Current status and every field of the form, across all steps."""
        form = self._active_form(form_id, "id, status")
        steps = self.db.table("form_steps").select("id").eq("form_id", form_id).execute()
        step_ids = [row["id"] for row in steps.data]

        fields: list[FieldRequirement] = []
        if step_ids:
            rows = self.db.table("form_fields").select("id, label, required").in_(
                "step_id", step_ids
            ).execute()
            fields = [
                FieldRequirement(id=str(r["id"]), label=r["label"], required=bool(r["required"]))
                for r in rows.data
            ]
        return FormSchema(id=str(form["id"]), status=form["status"], fields=fields)

    def find_step_order(self, form_id: str, step_id: str) -> Optional[int]:
        """Current order of a step of this form, or None if it no longer exists."""
        result = self.db.table("form_steps").select('"order"').eq("id", step_id).eq(
            "form_id", form_id
        ).execute()
        if not result.data:
            return None
        return result.data[0]["order"]

    # ── Reindexing ────────────────────────────────────────────────
    # Each operation locks the parent row first, so two concurrent
    # reorders of the same parent run one after the other.

    def reorder_steps(self, form_id: str, step_ids: list[str]) -> list[OrderedItem]:
        with self.db.transaction() as tx:
            self._lock(tx, "forms", form_id, FORM_NOT_FOUND, live_form=True)
            existing = self._child_ids(tx, "form_steps", "form_id", form_id)
            _check_same_members(existing, step_ids, "step")
            _reindex(tx, "form_steps", step_ids)
        logger.info(f"Reordered {len(step_ids)} steps of form={form_id}")
        return [OrderedItem(id=sid, order=i) for i, sid in enumerate(step_ids)]

    def delete_step(self, form_id: str, step_id: str) -> None:
        with self.db.transaction() as tx:
            self._lock(tx, "forms", form_id, FORM_NOT_FOUND, live_form=True)
            deleted = tx.table("form_steps").delete().eq("id", step_id).eq("form_id", form_id).execute()
            if not deleted.data:
                raise AppError.not_found(STEP_NOT_FOUND)
            _reindex(tx, "form_steps", self._child_ids(tx, "form_steps", "form_id", form_id))
        logger.info(f"Deleted step={step_id} of form={form_id}")

    def reorder_fields(self, form_id: str, step_id: str, field_ids: list[str]) -> list[OrderedItem]:
        with self.db.transaction() as tx:
            self._lock_step(tx, form_id, step_id)
            existing = self._child_ids(tx, "form_fields", "step_id", step_id)
            _check_same_members(existing, field_ids, "field")
            _reindex(tx, "form_fields", field_ids)
        logger.info(f"Reordered {len(field_ids)} fields of step={step_id}")
        return [OrderedItem(id=fid, order=i) for i, fid in enumerate(field_ids)]

    def delete_field(self, form_id: str, step_id: str, field_id: str) -> None:
        with self.db.transaction() as tx:
            self._lock_step(tx, form_id, step_id)
            deleted = tx.table("form_fields").delete().eq("id", field_id).eq("step_id", step_id).execute()
            if not deleted.data:
                raise AppError.not_found(FIELD_NOT_FOUND)
            _reindex(tx, "form_fields", self._child_ids(tx, "form_fields", "step_id", step_id))
        logger.info(f"Deleted field={field_id} of step={step_id}")

    def _lock(self, tx: Transaction, table: str, row_id: str, missing: str, live_form: bool = False) -> None:
        query = tx.table(table).select("id").eq("id", row_id)
        if live_form:
            query = query.is_null("deleted_at")
        if not query.for_update().execute().data:
            raise AppError.not_found(missing)

    def _lock_step(self, tx: Transaction, form_id: str, step_id: str) -> None:
        self._lock(tx, "forms", form_id, FORM_NOT_FOUND, live_form=True)
        step = tx.table("form_steps").select("id").eq("id", step_id).eq("form_id", form_id).for_update().execute()
        if not step.data:
            raise AppError.not_found(STEP_NOT_FOUND)

    @staticmethod
    def _child_ids(tx: Transaction, table: str, parent_col: str, parent_id: str) -> list[str]:
        rows = tx.table(table).select("id").eq(parent_col, parent_id).order('"order"').execute()
        return [str(row["id"]) for row in rows.data]


def _check_same_members(existing: list[str], provided: list[str], noun: str) -> None:
    if len(set(provided)) != len(provided):
        raise AppError.validation(f"Duplicate {noun} ids in reorder request")
    if len(provided) != len(existing):
        raise AppError.validation(
            f"Number of {noun}s provided does not match the existing {noun}s",
            details={"expected": len(existing), "received": len(provided)},
        )
    unknown = [i for i in provided if i not in set(existing)]
    if unknown:
        raise AppError.validation(f"Unknown {noun} ids: {', '.join(unknown)}", details={"unknownIds": unknown})


def _reindex(tx: Transaction, table: str, ordered_ids: list[str]) -> None:
    """Rewrite "order" as 0..n-1 following ordered_ids."""
    for position, item_id in enumerate(ordered_ids):
        tx.table(table).update({'"order"': position}).eq("id", item_id).execute()
