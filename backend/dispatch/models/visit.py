"""
Job visit models.

Visits are owned by the visit service; occurrences only keep a back-reference.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dispatch.models.enums import BillingMode, InvoiceTiming, LineItemType, Priority


class VisitLineItem(BaseModel):
    name: str
    description: Optional[str] = None
    quantity: float
    unit_price: float
    total: float
    item_type: Optional[LineItemType] = None
    source: str = "recurring_plan"
    sort_order: int = 0


class VisitCreate(BaseModel):
    """Payload sent to the visit service when promoting an occurrence."""

    plan_id: UUID
    occurrence_id: UUID
    client_id: UUID
    name: str
    address: str
    priority: Priority = Priority.MEDIUM
    scheduled_start_at: datetime
    scheduled_end_at: datetime

    arrival_constraint: str
    finish_constraint: str
    arrival_time: Optional[time] = None
    arrival_window_start: Optional[time] = None
    arrival_window_end: Optional[time] = None
    finish_time: Optional[time] = None

    line_items: list[VisitLineItem] = Field(default_factory=list)
    subtotal: float = 0.0

    billing_mode: BillingMode = BillingMode.PER_VISIT
    invoice_timing: InvoiceTiming = InvoiceTiming.ON_COMPLETION
    auto_invoice: bool = False


class JobVisit(VisitCreate):
    """Visit as returned by the visit service."""

    id: UUID
    status: str = "Scheduled"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VisitGenerationResult(BaseModel):
    visit_id: UUID
    occurrence_id: UUID
    scheduled_start_at: datetime
    scheduled_end_at: datetime
