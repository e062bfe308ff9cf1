"""
Activity log models.

Records lifecycle events on plans and occurrences for audit/history views.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ActivityLogCreate(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100)
    entity_type: str = Field(..., min_length=1, max_length=50)
    entity_id: str = Field(..., min_length=1, max_length=36)
    changes: dict[str, Any] = Field(default_factory=dict)
    actor_id: Optional[str] = None


class ActivityLogEntry(ActivityLogCreate):
    id: UUID
    created_at: datetime

    class Config:
        from_attributes = True
