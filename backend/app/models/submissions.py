"""
Pydantic models for form submissions.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from backend.app.models.base import CamelModel


class SubmissionCreate(CamelModel):
    """Public submission payload: field id -> value."""
    data: dict[str, Any]
    session_id: str = Field(..., min_length=1, max_length=200)


class SubmissionRecord(CamelModel):
    id: str
    form_id: str
    data: dict[str, Any]
    metadata: Optional[dict[str, Any]] = None
    completed_at: datetime
    created_at: datetime
