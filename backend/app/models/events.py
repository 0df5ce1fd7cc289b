"""
Pydantic models for tracking events.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from backend.app.models.base import CamelModel


class EventKind(str, Enum):
    """Interaction types recorded by the public tracking endpoint."""
    VIEW = "VIEW"
    START = "START"
    STEP_COMPLETE = "STEP_COMPLETE"
    SUBMIT = "SUBMIT"
    ABANDON = "ABANDON"


class EventCreate(CamelModel):
    """Single event posted by a form renderer."""
    type: EventKind = Field(..., description="Interaction type")
    session_id: str = Field(..., min_length=1, max_length=200, description="Anonymous client-generated session id")
    step_id: Optional[UUID] = Field(None, description="Step the event refers to (STEP_COMPLETE only)")
    metadata: Optional[dict[str, Any]] = None


class EventRecord(CamelModel):
    """Event as stored; created_at is assigned by the server."""
    id: str
    type: EventKind
    session_id: str
    step_order: Optional[int] = None
    created_at: datetime
