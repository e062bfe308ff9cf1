"""
Recurring occurrence models.

An occurrence is one concrete scheduled instance derived from a plan's rule.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from dispatch.models.enums import OccurrenceStatus
from dispatch.utils.datetime_utils import ensure_utc


class ResolvedSchedule(BaseModel):
    """Concrete timestamps for one occurrence date (UTC instants)."""

    start_at: datetime
    end_at: datetime
    arrival_window_start: Optional[datetime] = None
    arrival_window_end: Optional[datetime] = None


class OccurrenceDraft(ResolvedSchedule):
    """A not-yet-persisted occurrence produced by the generator."""

    occurrence_date: date


class RecurringOccurrence(BaseModel):
    """Persisted occurrence."""

    id: UUID
    plan_id: UUID
    occurrence_date: date
    occurrence_start_at: datetime
    occurrence_end_at: datetime
    arrival_window_start: Optional[datetime] = None
    arrival_window_end: Optional[datetime] = None
    status: OccurrenceStatus = OccurrenceStatus.PLANNED
    job_visit_id: Optional[UUID] = None
    skip_reason: Optional[str] = None
    skipped_at: Optional[datetime] = None
    generated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator(
        "occurrence_start_at",
        "occurrence_end_at",
        "arrival_window_start",
        "arrival_window_end",
        "skipped_at",
        "generated_at",
        "cancelled_at",
    )
    @classmethod
    def normalize_instant(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    class Config:
        from_attributes = True


class OccurrenceTimesUpdate(BaseModel):
    """New date/timestamps for an occurrence being rescheduled in place."""

    occurrence_date: date
    occurrence_start_at: datetime
    occurrence_end_at: datetime
    arrival_window_start: Optional[datetime] = None
    arrival_window_end: Optional[datetime] = None


# ===========================================
# Request payloads
# ===========================================


class GenerateOccurrencesRequest(BaseModel):
    days_ahead: int = Field(30, ge=1, le=365)


class SkipOccurrenceRequest(BaseModel):
    skip_reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("skip_reason")
    @classmethod
    def strip_reason(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Skip reason is required")
        return value


class RescheduleOccurrenceRequest(BaseModel):
    new_start_at: datetime
    new_end_at: Optional[datetime] = None

    @field_validator("new_start_at", "new_end_at")
    @classmethod
    def normalize_instant(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_order(self):
        if self.new_end_at is not None and self.new_end_at <= self.new_start_at:
            raise ValueError("new_end_at must be after new_start_at")
        return self


class BulkSkipRequest(SkipOccurrenceRequest):
    occurrence_ids: list[UUID] = Field(..., min_length=1)


class BulkRescheduleRequest(BaseModel):
    occurrence_ids: list[UUID] = Field(..., min_length=1)
    offset_days: int = Field(..., ge=-365, le=365)


# ===========================================
# Results
# ===========================================


class GenerationResult(BaseModel):
    """Outcome of one generation call for a plan."""

    plan_id: UUID
    created: list[UUID] = Field(default_factory=list)
    skipped_existing: int = 0
    window_start: Optional[date] = None
    window_end: Optional[date] = None

    @property
    def created_count(self) -> int:
        return len(self.created)


class BulkItemFailure(BaseModel):
    occurrence_id: UUID
    error: str
    message: str


class BulkOperationResult(BaseModel):
    """Per-item outcome of a bulk occurrence operation."""

    succeeded: list[RecurringOccurrence] = Field(default_factory=list)
    failed: list[BulkItemFailure] = Field(default_factory=list)
