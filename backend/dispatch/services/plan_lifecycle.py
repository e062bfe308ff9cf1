"""
Recurring plan lifecycle.

Active <-> Paused; Active/Paused -> Completed | Cancelled (terminal).
Cancel and complete cascade future planned occurrences to cancelled.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from dispatch.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from dispatch.core.logger import setup_logger
from dispatch.interfaces.clock import IClock
from dispatch.interfaces.recurring_plan_repository import IRecurringPlanRepository
from dispatch.models.enums import PlanStatus
from dispatch.models.occurrence import GenerationResult
from dispatch.models.recurring_plan import RecurringPlan, RecurringPlanCreate, RecurringPlanUpdate
from dispatch.services.activity_logger import ActivityRecorder
from dispatch.services.occurrence_generator import OccurrenceGenerator
from dispatch.services.rule_expander import validate_rule
from dispatch.utils.datetime_utils import get_zone

logger = setup_logger(__name__)

_LIVE = {PlanStatus.ACTIVE, PlanStatus.PAUSED}


class PlanLifecycleController:
    """Plan creation, updates and status transitions."""

    def __init__(
        self,
        plan_repo: IRecurringPlanRepository,
        generator: OccurrenceGenerator,
        clock: IClock,
        activity: Optional[ActivityRecorder] = None,
    ):
        self.plan_repo = plan_repo
        self.generator = generator
        self.clock = clock
        self.activity = activity or ActivityRecorder()

    async def _get_plan(self, plan_id: UUID) -> RecurringPlan:
        plan = await self.plan_repo.get(plan_id)
        if not plan:
            raise NotFoundError(f"RecurringPlan {plan_id} not found")
        return plan

    async def create_plan(self, data: RecurringPlanCreate) -> tuple[RecurringPlan, GenerationResult]:
        """Create an Active plan and generate its first window of occurrences."""
        get_zone(data.timezone)
        validate_rule(data.rule)

        plan = await self.plan_repo.create(data)
        logger.info(f"Created recurring plan {plan.id} ({plan.rule.frequency.value})")
        await self.activity.record(
            "plan_created",
            "recurring_plan",
            plan.id,
            {"name": plan.name, "frequency": plan.rule.frequency.value},
        )

        result = await self.generator.generate(plan.id, plan.generation_window_days)
        return await self._get_plan(plan.id), result

    async def update_plan(self, plan_id: UUID, update: RecurringPlanUpdate) -> RecurringPlan:
        """
        Update a live plan.

        A replaced rule applies to future generation only; occurrences that
        already exist keep their dates.
        """
        plan = await self._get_plan(plan_id)
        if plan.is_terminal:
            raise InvalidStateError(
                f"Plan {plan_id} is {plan.status.value} and can no longer be edited",
                current_state=plan.status.value,
            )
        if update.timezone is not None:
            get_zone(update.timezone)
        if update.rule is not None:
            validate_rule(update.rule)

        fields = update.model_fields_set
        starts_at = update.starts_at or plan.starts_at
        ends_at = update.ends_at if "ends_at" in fields else plan.ends_at
        if ends_at is not None and ends_at <= starts_at:
            raise ValidationError("ends_at must be after starts_at", field="ends_at")

        updated = await self.plan_repo.update(plan_id, update)
        await self.activity.record(
            "plan_updated", "recurring_plan", plan_id, {"fields": sorted(fields)}
        )
        return updated

    async def _transition(
        self,
        plan_id: UUID,
        expected: set[PlanStatus],
        new_status: PlanStatus,
        event_type: str,
        cascade_reason: Optional[str] = None,
    ) -> RecurringPlan:
        plan = await self._get_plan(plan_id)
        if plan.status not in expected:
            raise InvalidStateError(
                f"Cannot move plan {plan_id} from {plan.status.value} to {new_status.value}",
                current_state=plan.status.value,
            )

        updated, cascaded = await self.plan_repo.transition_status(
            plan_id,
            expected,
            new_status,
            cancel_planned_reason=cascade_reason,
            now=self.clock.now(),
        )
        logger.info(
            f"Plan {plan_id}: {plan.status.value} -> {new_status.value}"
            + (f" ({cascaded} planned occurrences cancelled)" if cascade_reason else "")
        )
        changes = {"from": plan.status.value, "to": new_status.value}
        if cascade_reason:
            changes["cancelled_occurrences"] = cascaded
        await self.activity.record(event_type, "recurring_plan", plan_id, changes)
        return updated

    async def pause(self, plan_id: UUID) -> RecurringPlan:
        """Stop generation; existing occurrences are untouched."""
        return await self._transition(plan_id, {PlanStatus.ACTIVE}, PlanStatus.PAUSED, "plan_paused")

    async def resume(self, plan_id: UUID) -> RecurringPlan:
        """Re-enable generation from the plan's watermark."""
        return await self._transition(plan_id, {PlanStatus.PAUSED}, PlanStatus.ACTIVE, "plan_resumed")

    async def cancel(self, plan_id: UUID) -> RecurringPlan:
        return await self._transition(
            plan_id, _LIVE, PlanStatus.CANCELLED, "plan_cancelled", cascade_reason="Plan cancelled"
        )

    async def complete(self, plan_id: UUID) -> RecurringPlan:
        return await self._transition(
            plan_id, _LIVE, PlanStatus.COMPLETED, "plan_completed", cascade_reason="Plan completed"
        )

    async def generate_occurrences(
        self, plan_id: UUID, days_ahead: Optional[int] = None
    ) -> GenerationResult:
        """Generation gate: only Active plans may generate."""
        plan = await self._get_plan(plan_id)
        if plan.status != PlanStatus.ACTIVE:
            raise InvalidStateError(
                f"Occurrences can only be generated for Active plans "
                f"(plan {plan_id} is {plan.status.value})",
                current_state=plan.status.value,
            )
        return await self.generator.generate(plan_id, days_ahead)
