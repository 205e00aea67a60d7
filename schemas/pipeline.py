"""Pipeline request, report, and record schemas.

JSON bodies use camelCase (orgId, supporterIds, audienceType); Python code
uses the snake_case field names.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Bulk push report
# ---------------------------------------------------------------------------


class PushSuccess(_CamelModel):
    contact_id: str
    pipeline_id: str
    email: Optional[str] = None
    name: Optional[str] = None


class PushError(_CamelModel):
    contact_id: str
    error: str


class PushSkip(_CamelModel):
    contact_id: str
    reason: str
    pipeline_id: Optional[str] = None
    email: Optional[str] = None


class PushReport(_CamelModel):
    success: List[PushSuccess] = Field(default_factory=list)
    errors: List[PushError] = Field(default_factory=list)
    skipped: List[PushSkip] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.success) + len(self.errors) + len(self.skipped)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class PushAllRequest(_CamelModel):
    org_id: Optional[str] = None
    audience_type: str = "org_member"
    stage: Optional[str] = None


class PushRequest(PushAllRequest):
    supporter_ids: List[str] = Field(default_factory=list)
    source: str = "admin_add"


class PushByTagRequest(PushAllRequest):
    tags: List[str] = Field(default_factory=list)


class MoveStageRequest(_CamelModel):
    org_id: Optional[str] = None
    from_stage: str
    to_stage: str
    audience_type: Optional[str] = None


class PipelineUpdateRequest(_CamelModel):
    stage: Optional[str] = None
    rsvp: Optional[bool] = None
    tags: Optional[List[str]] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class FormSubmissionRequest(_CamelModel):
    org_id: Optional[str] = None
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    stage: Optional[str] = None
    audience_type: str = "org_member"
    answers: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class PipelineRecordOut(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    org_id: UUID
    event_id: UUID
    contact_id: UUID
    audience_type: str
    stage: str
    source: Optional[str] = None
    rsvp: bool
    rsvp_date: Optional[datetime] = None
    paid: bool
    payment_date: Optional[datetime] = None
    amount: Optional[Decimal] = None
    attended: bool
    attendance_date: Optional[datetime] = None
    engagement_score: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    form_notes: Optional[dict[str, Any]] = None

    @field_serializer("amount")
    def _amount(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None


class AttendeeOut(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    org_id: UUID
    event_id: UUID
    contact_id: UUID
    pipeline_record_id: Optional[UUID] = None
    audience_type: str
    ticket_type: str
    paid: bool
    amount: Optional[Decimal] = None
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    attended: bool
    attendance_date: Optional[datetime] = None
    source: Optional[str] = None
    engagement_score: Optional[int] = None
    tags: List[str] = Field(default_factory=list)

    @field_serializer("amount")
    def _amount(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None


class PipelineUpdateResponse(_CamelModel):
    pipeline_record: PipelineRecordOut
    attendee: Optional[AttendeeOut] = None
    graduated: bool = False


class PipelineListResponse(_CamelModel):
    event_id: UUID
    stages: List[str]
    counts: dict[str, int]
    records: List[PipelineRecordOut]
