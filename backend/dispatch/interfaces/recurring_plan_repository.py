"""
Recurring plan repository interface.

Defines contract for recurring plan persistence operations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from dispatch.models.enums import PlanStatus
from dispatch.models.recurring_plan import (
    RecurringPlan,
    RecurringPlanCreate,
    RecurringPlanUpdate,
)


class IRecurringPlanRepository(ABC):
    """Abstract interface for recurring plan persistence."""

    @abstractmethod
    async def create(self, data: RecurringPlanCreate) -> RecurringPlan:
        """Create a plan with its rule and template line items."""
        pass

    @abstractmethod
    async def get(self, plan_id: UUID) -> Optional[RecurringPlan]:
        """Get a plan by ID."""
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[PlanStatus] = None,
        client_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RecurringPlan]:
        """List plans, newest first."""
        pass

    @abstractmethod
    async def update(self, plan_id: UUID, update: RecurringPlanUpdate) -> RecurringPlan:
        """Update descriptive, scheduling, billing, rule and line item fields."""
        pass

    @abstractmethod
    async def transition_status(
        self,
        plan_id: UUID,
        expected: set[PlanStatus],
        new_status: PlanStatus,
        cancel_planned_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[RecurringPlan, int]:
        """
        Atomically move a plan to ``new_status``.

        The transition only applies if the stored status is in ``expected``
        (raises InvalidStateError otherwise). When ``cancel_planned_reason``
        is given, every ``planned`` occurrence starting after ``now`` is
        cancelled in the same transaction. Returns the updated plan and the cascade count.
        """
        pass

