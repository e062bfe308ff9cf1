"""
Occurrence lifecycle operations.

planned -> skipped | generated (via the visit service) | cancelled (plan cascade).
Only planned occurrences are mutated here; rescheduling moves the same row.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from dispatch.core.exceptions import (
    DispatchError,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dispatch.core.logger import setup_logger
from dispatch.interfaces.clock import IClock
from dispatch.interfaces.occurrence_repository import IOccurrenceRepository
from dispatch.interfaces.recurring_plan_repository import IRecurringPlanRepository
from dispatch.interfaces.visit_service import IVisitService
from dispatch.models.constraints import arrival_fields, finish_time_of
from dispatch.models.enums import OccurrenceStatus
from dispatch.models.occurrence import (
    BulkItemFailure,
    BulkOperationResult,
    OccurrenceTimesUpdate,
    RecurringOccurrence,
)
from dispatch.models.recurring_plan import RecurringPlan
from dispatch.models.visit import VisitCreate, VisitGenerationResult, VisitLineItem
from dispatch.services.activity_logger import ActivityRecorder
from dispatch.utils.datetime_utils import UTC, ensure_utc, local_date_of, to_local

logger = setup_logger(__name__)


def _shift_local(value: Optional[datetime], days: int, tz_name: str) -> Optional[datetime]:
    """Move an instant by whole days of wall-clock time in ``tz_name``."""
    if value is None:
        return None
    return (to_local(value, tz_name) + timedelta(days=days)).astimezone(UTC)


def _require_planned(occurrence: RecurringOccurrence, action: str) -> None:
    if occurrence.status != OccurrenceStatus.PLANNED:
        raise InvalidStateError(
            f"Can only {action} planned occurrences "
            f"(occurrence {occurrence.id} is {occurrence.status.value})",
            current_state=occurrence.status.value,
        )


def build_visit_payload(plan: RecurringPlan, occurrence: RecurringOccurrence) -> VisitCreate:
    """Build the visit request from the plan template and occurrence times."""
    line_items = [
        VisitLineItem(
            name=item.name,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=round(item.total, 2),
            item_type=item.item_type,
            sort_order=item.sort_order or idx,
        )
        for idx, item in enumerate(plan.line_items)
    ]
    arrival = arrival_fields(plan.rule.arrival_constraint)
    return VisitCreate(
        plan_id=plan.id,
        occurrence_id=occurrence.id,
        client_id=plan.client_id,
        name=plan.name,
        address=plan.address,
        priority=plan.priority,
        scheduled_start_at=occurrence.occurrence_start_at,
        scheduled_end_at=occurrence.occurrence_end_at,
        arrival_constraint=plan.rule.arrival_constraint.kind,
        finish_constraint=plan.rule.finish_constraint.kind,
        arrival_time=arrival["arrival_time"],
        arrival_window_start=arrival["arrival_window_start"],
        arrival_window_end=arrival["arrival_window_end"],
        finish_time=finish_time_of(plan.rule.finish_constraint),
        line_items=line_items,
        subtotal=round(sum(item.total for item in line_items), 2),
        billing_mode=plan.billing_mode,
        invoice_timing=plan.invoice_timing,
        auto_invoice=plan.auto_invoice,
    )


class OccurrenceLifecycleManager:
    """Skip, reschedule and promote occurrences."""

    def __init__(
        self,
        occurrence_repo: IOccurrenceRepository,
        plan_repo: IRecurringPlanRepository,
        visit_service: IVisitService,
        clock: IClock,
        activity: Optional[ActivityRecorder] = None,
    ):
        self.occurrence_repo = occurrence_repo
        self.plan_repo = plan_repo
        self.visit_service = visit_service
        self.clock = clock
        self.activity = activity or ActivityRecorder()

    async def _get_occurrence(self, occurrence_id: UUID) -> RecurringOccurrence:
        occurrence = await self.occurrence_repo.get(occurrence_id)
        if not occurrence:
            raise NotFoundError(f"Occurrence {occurrence_id} not found")
        return occurrence

    async def _get_plan(self, plan_id: UUID) -> RecurringPlan:
        plan = await self.plan_repo.get(plan_id)
        if not plan:
            raise NotFoundError(f"RecurringPlan {plan_id} not found")
        return plan

    @staticmethod
    def _clean_reason(reason: Optional[str]) -> str:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ValidationError("Skip reason is required", field="skip_reason")
        return cleaned

    # ===========================================
    # Skip
    # ===========================================

    async def skip(self, occurrence_id: UUID, reason: str) -> RecurringOccurrence:
        """Mark a planned occurrence as skipped."""
        reason = self._clean_reason(reason)
        occurrence = await self.occurrence_repo.mark_skipped(occurrence_id, reason, self.clock.now())
        await self.activity.record(
            "occurrence_skipped",
            "recurring_occurrence",
            occurrence_id,
            {"skip_reason": reason, "occurrence_date": str(occurrence.occurrence_date)},
        )
        return occurrence

    async def bulk_skip(self, occurrence_ids: list[UUID], reason: str) -> BulkOperationResult:
        reason = self._clean_reason(reason)
        result = BulkOperationResult()
        for occurrence_id in dict.fromkeys(occurrence_ids):
            try:
                result.succeeded.append(await self.skip(occurrence_id, reason))
            except DispatchError as e:
                logger.info(f"Bulk skip: occurrence {occurrence_id} failed: {e.message}")
                result.failed.append(
                    BulkItemFailure(
                        occurrence_id=occurrence_id,
                        error=type(e).__name__,
                        message=e.message,
                    )
                )
        return result

    # ===========================================
    # Reschedule
    # ===========================================

    async def _move(
        self,
        occurrence: RecurringOccurrence,
        plan: RecurringPlan,
        new_start_at: datetime,
        new_end_at: datetime,
        window_start: Optional[datetime],
        window_end: Optional[datetime],
    ) -> RecurringOccurrence:
        update = OccurrenceTimesUpdate(
            occurrence_date=local_date_of(new_start_at, plan.timezone),
            occurrence_start_at=new_start_at,
            occurrence_end_at=new_end_at,
            arrival_window_start=window_start,
            arrival_window_end=window_end,
        )
        updated = await self.occurrence_repo.update_times(occurrence.id, update)
        await self.activity.record(
            "occurrence_rescheduled",
            "recurring_occurrence",
            occurrence.id,
            {
                "from": {
                    "occurrence_date": str(occurrence.occurrence_date),
                    "start_at": occurrence.occurrence_start_at.isoformat(),
                },
                "to": {
                    "occurrence_date": str(updated.occurrence_date),
                    "start_at": updated.occurrence_start_at.isoformat(),
                },
            },
        )
        return updated

    async def reschedule(
        self,
        occurrence_id: UUID,
        new_start_at: datetime,
        new_end_at: Optional[datetime] = None,
    ) -> RecurringOccurrence:
        """
        Move a planned occurrence to a new start (and optionally end).

        The occurrence date becomes the plan-local date of ``new_start_at``.
        Without ``new_end_at`` the current duration is kept. Any arrival
        window shifts by the same amount as the start.

        Raises:
            ConflictError: Another occurrence of the plan already uses that date
        """
        occurrence = await self._get_occurrence(occurrence_id)
        _require_planned(occurrence, "reschedule")
        plan = await self._get_plan(occurrence.plan_id)

        new_start_at = ensure_utc(new_start_at)
        if new_end_at is None:
            new_end_at = new_start_at + (occurrence.occurrence_end_at - occurrence.occurrence_start_at)
        else:
            new_end_at = ensure_utc(new_end_at)
            if new_end_at <= new_start_at:
                raise ValidationError("new_end_at must be after new_start_at", field="new_end_at")

        delta = new_start_at - occurrence.occurrence_start_at
        return await self._move(
            occurrence,
            plan,
            new_start_at,
            new_end_at,
            occurrence.arrival_window_start + delta if occurrence.arrival_window_start else None,
            occurrence.arrival_window_end + delta if occurrence.arrival_window_end else None,
        )

    async def bulk_reschedule(
        self, occurrence_ids: list[UUID], offset_days: int
    ) -> BulkOperationResult:
        """
        Shift occurrences by ``offset_days`` of plan-local wall-clock time.

        Items are moved latest-first for positive offsets and earliest-first for
        negative ones, so shifting a run of consecutive dates does not collide
        with its own members.
        """
        result = BulkOperationResult()
        loaded: list[RecurringOccurrence] = []
        for occurrence_id in dict.fromkeys(occurrence_ids):
            try:
                loaded.append(await self._get_occurrence(occurrence_id))
            except NotFoundError as e:
                result.failed.append(
                    BulkItemFailure(occurrence_id=occurrence_id, error=type(e).__name__, message=e.message)
                )

        loaded.sort(key=lambda o: o.occurrence_start_at, reverse=offset_days > 0)
        plans: dict[UUID, RecurringPlan] = {}

        for occurrence in loaded:
            try:
                _require_planned(occurrence, "reschedule")
                if occurrence.plan_id not in plans:
                    plans[occurrence.plan_id] = await self._get_plan(occurrence.plan_id)
                plan = plans[occurrence.plan_id]
                tz = plan.timezone
                moved = await self._move(
                    occurrence,
                    plan,
                    _shift_local(occurrence.occurrence_start_at, offset_days, tz),
                    _shift_local(occurrence.occurrence_end_at, offset_days, tz),
                    _shift_local(occurrence.arrival_window_start, offset_days, tz),
                    _shift_local(occurrence.arrival_window_end, offset_days, tz),
                )
                result.succeeded.append(moved)
            except DispatchError as e:
                logger.info(f"Bulk reschedule: occurrence {occurrence.id} failed: {e.message}")
                result.failed.append(
                    BulkItemFailure(occurrence_id=occurrence.id, error=type(e).__name__, message=e.message)
                )
        return result

    # ===========================================
    # Visit generation
    # ===========================================

    async def generate_visit(self, occurrence_id: UUID) -> VisitGenerationResult:
        """
        Promote a planned occurrence into a job visit.

        The occurrence stays planned if the visit service fails.

        Raises:
            InvalidStateError: Occurrence is not planned or already linked to a visit
            ExternalServiceError: Visit service failed (retryable)

        If the visit is created but the occurrence cannot be linked, the error
        raised carries ``orphaned_visit_id`` in its details.
        """
        occurrence = await self._get_occurrence(occurrence_id)
        _require_planned(occurrence, "generate visits for")
        if occurrence.job_visit_id:
            raise InvalidStateError(
                f"Occurrence {occurrence_id} already has visit {occurrence.job_visit_id}",
                current_state=occurrence.status.value,
            )
        plan = await self._get_plan(occurrence.plan_id)

        payload = build_visit_payload(plan, occurrence)
        try:
            visit = await self.visit_service.create_visit(payload)
        except ExternalServiceError as e:
            logger.warning(f"Visit creation failed for occurrence {occurrence_id}: {e.message}")
            raise

        try:
            updated = await self.occurrence_repo.mark_generated(occurrence_id, visit.id, self.clock.now())
        except DispatchError as e:
            logger.error(
                f"Visit {visit.id} was created but occurrence {occurrence_id} "
                f"could not be linked: {e.message}"
            )
            details = dict(e.details) if isinstance(e.details, dict) else {}
            details["orphaned_visit_id"] = str(visit.id)
            e.details = details
            raise

        logger.info(f"Generated visit {visit.id} from occurrence {occurrence_id}")
        await self.activity.record(
            "visit_generated",
            "recurring_occurrence",
            occurrence_id,
            {"job_visit_id": str(visit.id), "plan_id": str(plan.id)},
        )
        return VisitGenerationResult(
            visit_id=visit.id,
            occurrence_id=updated.id,
            scheduled_start_at=updated.occurrence_start_at,
            scheduled_end_at=updated.occurrence_end_at,
        )
