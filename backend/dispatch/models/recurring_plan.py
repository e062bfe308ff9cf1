"""
Recurring plan models.

A plan is a standing agreement to service a client on a schedule. It owns
exactly one recurrence rule and a list of template line items copied onto
every visit generated from it.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from dispatch.core.config import get_settings
from dispatch.models.constraints import (
    ArrivalAnytime,
    ArrivalConstraint,
    FinishConstraint,
    FinishWhenDone,
)
from dispatch.models.enums import (
    BillingMode,
    Frequency,
    InvoiceTiming,
    LineItemType,
    PlanStatus,
    Priority,
    Weekday,
)
from dispatch.utils.datetime_utils import ensure_utc


def rule_problems(
    frequency: Frequency,
    by_weekday: Optional[list[Weekday]],
    by_month_day: Optional[int],
    by_month: Optional[int],
) -> list[tuple[str, str]]:
    """Return ``(field, message)`` pairs for frequency-specific requirements."""
    problems: list[tuple[str, str]] = []
    if frequency == Frequency.WEEKLY and not by_weekday:
        problems.append(("by_weekday", "Weekly frequency requires at least one weekday"))
    if frequency == Frequency.MONTHLY and by_month_day is None:
        problems.append(("by_month_day", "Monthly frequency requires by_month_day"))
    if frequency == Frequency.YEARLY and by_month is None:
        problems.append(("by_month", "Yearly frequency requires by_month"))
    return problems


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class RecurringRule(BaseModel):
    """Recurrence definition attached 1:1 to a plan."""

    frequency: Frequency
    interval: int = Field(1, ge=1, le=365, description="Every N periods")
    by_weekday: Optional[list[Weekday]] = Field(
        None, description="Weekday codes, required for weekly rules"
    )
    by_month_day: Optional[int] = Field(
        None, ge=1, le=31, description="Day of month, for monthly/yearly rules"
    )
    by_month: Optional[int] = Field(None, ge=1, le=12, description="Month, for yearly rules")
    arrival_constraint: ArrivalConstraint = Field(default_factory=ArrivalAnytime)
    finish_constraint: FinishConstraint = Field(default_factory=FinishWhenDone)

    @field_validator("by_weekday")
    @classmethod
    def normalize_weekdays(cls, value: Optional[list[Weekday]]) -> Optional[list[Weekday]]:
        if value is None:
            return None
        return sorted(set(value), key=lambda wd: wd.index)

    @model_validator(mode="after")
    def validate_frequency_fields(self):
        problems = rule_problems(
            self.frequency, self.by_weekday, self.by_month_day, self.by_month
        )
        if problems:
            raise ValueError("; ".join(f"{field}: {msg}" for field, msg in problems))
        return self


class LineItemTemplate(BaseModel):
    """Line item copied onto each generated visit."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    quantity: float = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    item_type: Optional[LineItemType] = None
    sort_order: int = Field(0, ge=0)

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


class RecurringPlanBase(BaseModel):
    """Base fields for recurring plans."""

    client_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    address: str = Field(..., min_length=1, max_length=500)
    coords: Optional[Coordinates] = None
    priority: Priority = Priority.MEDIUM

    starts_at: datetime
    ends_at: Optional[datetime] = Field(None, description="Exclusive upper bound")
    timezone: str = Field(
        default_factory=lambda: get_settings().DEFAULT_TIMEZONE, min_length=1, max_length=64
    )
    generation_window_days: int = Field(90, ge=1, le=365)
    min_advance_days: int = Field(14, ge=0, le=90)

    billing_mode: BillingMode = BillingMode.PER_VISIT
    invoice_timing: InvoiceTiming = InvoiceTiming.ON_COMPLETION
    auto_invoice: bool = False

    @field_validator("starts_at", "ends_at")
    @classmethod
    def normalize_instant(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class RecurringPlanCreate(RecurringPlanBase):
    """Create a new recurring plan with its rule and template line items."""

    rule: RecurringRule
    line_items: list[LineItemTemplate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.ends_at is not None and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class RecurringPlanUpdate(BaseModel):
    """Update plan fields. Status changes go through the lifecycle operations."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    coords: Optional[Coordinates] = None
    priority: Optional[Priority] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    timezone: Optional[str] = Field(None, min_length=1, max_length=64)
    generation_window_days: Optional[int] = Field(None, ge=1, le=365)
    min_advance_days: Optional[int] = Field(None, ge=0, le=90)
    billing_mode: Optional[BillingMode] = None
    invoice_timing: Optional[InvoiceTiming] = None
    auto_invoice: Optional[bool] = None
    rule: Optional[RecurringRule] = None
    line_items: Optional[list[LineItemTemplate]] = Field(None, min_length=1)

    @field_validator("starts_at", "ends_at")
    @classmethod
    def normalize_instant(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class RecurringPlan(RecurringPlanBase):
    """Recurring plan with metadata."""

    id: UUID
    status: PlanStatus = PlanStatus.ACTIVE
    rule: RecurringRule
    line_items: list[LineItemTemplate] = Field(default_factory=list)
    last_generated_through: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in (PlanStatus.COMPLETED, PlanStatus.CANCELLED)

    class Config:
        from_attributes = True
