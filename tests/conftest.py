"""
In-memory stand-ins for the stores and the cache backend.
They follow the repository interfaces used by the services.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from shared_config import settings
from backend.app.errors import AppError
from backend.app.models.events import EventKind
from backend.app.models.forms import (
    FieldRequirement,
    FormOwner,
    FormSchema,
    OrderedItem,
    StepSummary,
)

NOW = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def make_token(sub, minutes=15, **claims) -> str:
    """Sign a bearer token the way the account service does."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": sub, "exp": expire, **claims}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


class FakeFormRepository:

    def __init__(self):
        self.forms = {}
        self.calls = 0

    def add_form(self, user_id, status="PUBLISHED", steps=None, deleted=False, form_id=None):
        """steps: list of (title, [(field_id, label, required), ...])."""
        form_id = form_id or new_id()
        self.forms[form_id] = {
            "user_id": user_id,
            "status": status,
            "deleted": deleted,
            "steps": [
                {
                    "id": new_id(),
                    "order": i,
                    "title": title,
                    "fields": [{"id": fid, "label": label, "required": req} for fid, label, req in fields],
                }
                for i, (title, fields) in enumerate(steps or [])
            ],
        }
        return form_id

    def _live(self, form_id):
        self.calls += 1
        form = self.forms.get(form_id)
        if form is None or form["deleted"]:
            raise AppError.not_found("Form not found")
        return form

    def ensure_exists(self, form_id):
        self._live(form_id)

    def get_steps_ordered(self, form_id):
        form = self._live(form_id)
        steps = sorted(form["steps"], key=lambda s: s["order"])
        return [StepSummary(order=s["order"], title=s["title"]) for s in steps]

    def list_owned_form_ids(self, user_id):
        self.calls += 1
        return {fid for fid, f in self.forms.items() if f["user_id"] == user_id and not f["deleted"]}

    def verify_ownership(self, form_id, user_id):
        form = self._live(form_id)
        if form["user_id"] != user_id:
            raise AppError.forbidden("Access to this form is forbidden")
        return FormOwner(id=form_id, user_id=user_id)

    def get_form_schema(self, form_id):
        form = self._live(form_id)
        fields = [
            FieldRequirement(id=f["id"], label=f["label"], required=f["required"])
            for s in form["steps"] for f in s["fields"]
        ]
        return FormSchema(id=form_id, status=form["status"], fields=fields)

    def find_step_order(self, form_id, step_id):
        for step in self.forms[form_id]["steps"]:
            if step["id"] == step_id:
                return step["order"]
        return None

    def reorder_steps(self, form_id, step_ids):
        form = self._live(form_id)
        if sorted(step_ids) != sorted(s["id"] for s in form["steps"]):
            raise AppError.validation("Number of steps provided does not match the existing steps")
        by_id = {s["id"]: s for s in form["steps"]}
        for i, sid in enumerate(step_ids):
            by_id[sid]["order"] = i
        return [OrderedItem(id=sid, order=i) for i, sid in enumerate(step_ids)]

    def reorder_fields(self, form_id, step_id, field_ids):
        step = self._step(form_id, step_id)
        if sorted(field_ids) != sorted(f["id"] for f in step["fields"]):
            raise AppError.validation("Number of fields provided does not match the existing fields")
        by_id = {f["id"]: f for f in step["fields"]}
        step["fields"] = [by_id[fid] for fid in field_ids]
        return [OrderedItem(id=fid, order=i) for i, fid in enumerate(field_ids)]

    def delete_field(self, form_id, step_id, field_id):
        step = self._step(form_id, step_id)
        remaining = [f for f in step["fields"] if f["id"] != field_id]
        if len(remaining) == len(step["fields"]):
            raise AppError.not_found("Field not found")
        step["fields"] = remaining

    def _step(self, form_id, step_id):
        for step in self._live(form_id)["steps"]:
            if step["id"] == step_id:
                return step
        raise AppError.not_found("Step not found")


class FakeEventStore:

    def __init__(self):
        self.events = []
        self.calls = 0

    def add(self, form_id, kind, n=1, step_order=None, created_at=NOW):
        for _ in range(n):
            self.events.append({
                "id": new_id(),
                "form_id": form_id,
                "type": kind,
                "session_id": "sess",
                "step_order": step_order,
                "metadata": None,
                "created_at": created_at,
            })

    def _match(self, form_id, kind):
        ids = {form_id} if isinstance(form_id, str) else set(form_id)
        return [e for e in self.events if e["form_id"] in ids and e["type"] == kind]

    def record(self, form_id, kind, session_id, step_order=None, metadata=None):
        row = {
            "id": new_id(),
            "form_id": form_id,
            "type": kind.value,
            "session_id": session_id,
            "step_order": step_order,
            "metadata": metadata,
            "created_at": NOW,
        }
        self.events.append(dict(row, type=kind))
        return row

    def count(self, form_id, kind, step_order=None):
        self.calls += 1
        matched = self._match(form_id, kind)
        if step_order is not None:
            matched = [e for e in matched if e["step_order"] == step_order]
        return len(matched)

    def group_count_by_step_order(self, form_id, kind):
        self.calls += 1
        counts = {}
        for e in self._match(form_id, kind):
            if e["step_order"] is not None:
                counts[e["step_order"]] = counts.get(e["step_order"], 0) + 1
        return counts

    def find_in_range(self, form_id, kind, from_timestamp):
        self.calls += 1
        return [e["created_at"] for e in self._match(form_id, kind) if e["created_at"] >= from_timestamp]


class FakeSubmissionStore:

    def __init__(self):
        self.rows = []
        self.calls = 0

    def add(self, form_id, n=1):
        for _ in range(n):
            self.create(form_id, {}, {"sessionId": "sess"}, NOW)

    def create(self, form_id, data, metadata, completed_at):
        row = {
            "id": new_id(),
            "form_id": form_id,
            "data": data,
            "metadata": metadata,
            "completed_at": completed_at,
            "created_at": completed_at,
        }
        self.rows.append(row)
        return row

    def count(self, form_id):
        self.calls += 1
        ids = {form_id} if isinstance(form_id, str) else set(form_id)
        return sum(1 for r in self.rows if r["form_id"] in ids)

    def list_page(self, form_id, page, limit):
        rows = [r for r in reversed(self.rows) if r["form_id"] == form_id]
        start = (page - 1) * limit
        return rows[start:start + limit], len(rows)

    def get(self, form_id, submission_id):
        for r in self.rows:
            if r["id"] == submission_id and r["form_id"] == form_id:
                return r
        return None


class FakeCacheBackend:
    """Dict-backed stand-in for redis.asyncio.Redis (get/set with ex)."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True


class BrokenCacheBackend:
    """Backend whose every call fails, like an unreachable Redis."""

    def __init__(self):
        self.attempts = 0

    async def get(self, key):
        self.attempts += 1
        raise ConnectionError("redis unavailable")

    async def set(self, key, value, ex=None):
        self.attempts += 1
        raise ConnectionError("redis unavailable")


@pytest.fixture()
def form_repo():
    return FakeFormRepository()


@pytest.fixture()
def event_store():
    return FakeEventStore()


@pytest.fixture()
def submission_store():
    return FakeSubmissionStore()


@pytest.fixture()
def cache_backend():
    return FakeCacheBackend()
