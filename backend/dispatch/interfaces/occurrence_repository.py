"""
Occurrence repository interface.

Storage must enforce uniqueness of (plan_id, occurrence_date); inserts that
violate it raise ConflictError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable, Optional
from uuid import UUID

from dispatch.models.enums import OccurrenceStatus
from dispatch.models.occurrence import (
    OccurrenceDraft,
    OccurrenceTimesUpdate,
    RecurringOccurrence,
)


class IOccurrenceRepository(ABC):
    """Abstract interface for occurrence persistence."""

    @abstractmethod
    async def get(self, occurrence_id: UUID) -> Optional[RecurringOccurrence]:
        """Get an occurrence by ID."""
        pass

    @abstractmethod
    async def list_by_plan(
        self,
        plan_id: UUID,
        status: Optional[OccurrenceStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[RecurringOccurrence]:
        """List a plan's occurrences ordered by start time."""
        pass

    @abstractmethod
    async def find_existing_dates(self, plan_id: UUID, dates: Iterable[date]) -> set[date]:
        """Return which of ``dates`` already have an occurrence (any status)."""
        pass

    @abstractmethod
    async def create_batch(
        self,
        plan_id: UUID,
        drafts: list[OccurrenceDraft],
        generated_through: date,
    ) -> list[RecurringOccurrence]:
        """
        Insert all drafts and advance the plan watermark in one transaction.

        The watermark never regresses. Nothing is persisted if any insert
        fails; a uniqueness violation raises ConflictError.
        """
        pass

    @abstractmethod
    async def mark_skipped(
        self, occurrence_id: UUID, reason: str, now: datetime
    ) -> RecurringOccurrence:
        """planned -> skipped (InvalidStateError if no longer planned)."""
        pass

    @abstractmethod
    async def mark_generated(
        self, occurrence_id: UUID, job_visit_id: UUID, now: datetime
    ) -> RecurringOccurrence:
        """planned -> generated with the visit back-reference."""
        pass

    @abstractmethod
    async def update_times(
        self, occurrence_id: UUID, update: OccurrenceTimesUpdate
    ) -> RecurringOccurrence:
        """Move a planned occurrence in place (ConflictError on date collision)."""
        pass
