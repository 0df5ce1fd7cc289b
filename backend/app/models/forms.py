"""
Pydantic models for the form structure read by aggregation and validation.
"""

from uuid import UUID

from pydantic import BaseModel, Field

from backend.app.models.base import CamelModel


class FormStatus:
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class StepSummary(BaseModel):
    """A step as the funnel sees it."""
    order: int
    title: str


class FieldRequirement(BaseModel):
    """The parts of a field definition submission validation needs."""
    id: str
    label: str
    required: bool = False


class FormSchema(BaseModel):
    """Current status and field set of a form."""
    id: str
    status: str
    fields: list[FieldRequirement] = []


class FormOwner(BaseModel):
    id: str
    user_id: str


class ReorderStepsRequest(CamelModel):
    step_ids: list[UUID] = Field(..., min_length=1)


class ReorderFieldsRequest(CamelModel):
    field_ids: list[UUID] = Field(..., min_length=1)


class OrderedItem(CamelModel):
    id: str
    order: int
