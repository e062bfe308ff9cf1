"""
Occurrence generation.

Materializes a plan's rule into planned occurrences inside a sliding window.
Generation is idempotent: dates that already have an occurrence (any status)
are skipped, and the storage-level UNIQUE(plan_id, occurrence_date) constraint
catches concurrent callers, in which case the call is retried against the
fresh set of existing dates.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional
from uuid import UUID

from dispatch.core.config import get_settings
from dispatch.core.exceptions import ConflictError, DispatchError, InvalidStateError, NotFoundError
from dispatch.core.logger import setup_logger
from dispatch.interfaces.clock import IClock
from dispatch.interfaces.occurrence_repository import IOccurrenceRepository
from dispatch.interfaces.recurring_plan_repository import IRecurringPlanRepository
from dispatch.models.enums import PlanStatus
from dispatch.models.occurrence import GenerationResult, OccurrenceDraft
from dispatch.models.recurring_plan import RecurringPlan
from dispatch.services.activity_logger import ActivityRecorder
from dispatch.services.constraint_resolver import ConstraintResolver
from dispatch.services.rule_expander import RuleExpander, validate_rule
from dispatch.utils.datetime_utils import get_zone, local_date_of

logger = setup_logger(__name__)

SWEEP_PAGE_SIZE = 100


class OccurrenceGenerator:
    """Service for generating occurrences from recurring plans."""

    def __init__(
        self,
        plan_repo: IRecurringPlanRepository,
        occurrence_repo: IOccurrenceRepository,
        clock: IClock,
        expander: Optional[RuleExpander] = None,
        resolver: Optional[ConstraintResolver] = None,
        activity: Optional[ActivityRecorder] = None,
        max_retries: Optional[int] = None,
    ):
        settings = get_settings()
        self.plan_repo = plan_repo
        self.occurrence_repo = occurrence_repo
        self.clock = clock
        self.expander = expander or RuleExpander()
        self.resolver = resolver or ConstraintResolver()
        self.activity = activity or ActivityRecorder()
        self.max_retries = max_retries or settings.GENERATION_MAX_RETRIES
        self.default_days_ahead = settings.DEFAULT_DAYS_AHEAD

    async def generate(self, plan_id: UUID, days_ahead: Optional[int] = None) -> GenerationResult:
        """
        Generate missing occurrences for one plan.

        Raises:
            NotFoundError: Unknown plan
            InvalidStateError: Plan is not Active
            ValidationError: Stored rule or timezone is malformed
            ConflictError: Concurrent inserts kept colliding after all retries
        """
        days_ahead = days_ahead or self.default_days_ahead
        last_conflict: Optional[ConflictError] = None

        for attempt in range(1, self.max_retries + 1):
            plan = await self.plan_repo.get(plan_id)
            if not plan:
                raise NotFoundError(f"RecurringPlan {plan_id} not found")
            if plan.status != PlanStatus.ACTIVE:
                raise InvalidStateError(
                    f"Occurrences can only be generated for Active plans "
                    f"(plan {plan_id} is {plan.status.value})",
                    current_state=plan.status.value,
                )
            validate_rule(plan.rule)
            get_zone(plan.timezone)

            try:
                result = await self._generate_once(plan, days_ahead)
            except ConflictError as exc:
                last_conflict = exc
                logger.warning(
                    f"Concurrent generation for plan {plan_id} "
                    f"(attempt {attempt}/{self.max_retries}); retrying"
                )
                continue

            if result.created:
                logger.info(
                    f"Generated {result.created_count} occurrences for plan {plan_id} "
                    f"({result.window_start} to {result.window_end}, "
                    f"{result.skipped_existing} already existed)"
                )
                await self.activity.record(
                    "occurrences_generated",
                    "recurring_plan",
                    plan_id,
                    {
                        "count": result.created_count,
                        "window_start": str(result.window_start),
                        "window_end": str(result.window_end),
                    },
                )
            return result

        raise ConflictError(
            f"Could not generate occurrences for plan {plan_id}: "
            f"concurrent generation kept inserting the same dates",
            details=last_conflict.details if last_conflict else None,
        )

    def compute_window(
        self, plan: RecurringPlan, today: date, days_ahead: int
    ) -> tuple[date, date, Optional[date]]:
        """Return ``(window_start, window_end, until)`` for a plan as of ``today``."""
        anchor = local_date_of(plan.starts_at, plan.timezone)
        window_start = max(today, anchor)
        if plan.last_generated_through is not None:
            window_start = max(window_start, plan.last_generated_through + timedelta(days=1))

        window_end = today + timedelta(days=min(days_ahead, plan.generation_window_days))
        until = local_date_of(plan.ends_at, plan.timezone) if plan.ends_at else None
        if until is not None:
            window_end = min(window_end, until)
        return window_start, window_end, until

    async def _generate_once(self, plan: RecurringPlan, days_ahead: int) -> GenerationResult:
        tz = plan.timezone
        today = self.clock.today(tz)
        anchor = local_date_of(plan.starts_at, tz)
        window_start, window_end, until = self.compute_window(plan, today, days_ahead)
        result = GenerationResult(plan_id=plan.id, window_start=window_start, window_end=window_end)

        if window_start > window_end:
            return result

        notice_floor = today + timedelta(days=plan.min_advance_days)
        drafts: list[OccurrenceDraft] = []
        for candidate in self.expander.expand(plan.rule, anchor, window_start, window_end, until):
            if candidate < notice_floor:
                continue
            schedule = self.resolver.resolve(
                candidate, tz, plan.rule.arrival_constraint, plan.rule.finish_constraint
            )
            if schedule.start_at < plan.starts_at:
                continue
            if plan.ends_at is not None and schedule.start_at >= plan.ends_at:
                continue
            drafts.append(OccurrenceDraft(occurrence_date=candidate, **schedule.model_dump()))

        existing = await self.occurrence_repo.find_existing_dates(
            plan.id, [draft.occurrence_date for draft in drafts]
        )
        new_drafts = [draft for draft in drafts if draft.occurrence_date not in existing]

        created = await self.occurrence_repo.create_batch(plan.id, new_drafts, window_end)
        result.created = [occurrence.id for occurrence in created]
        result.skipped_existing = len(existing)
        return result

    async def generate_all_active(self) -> dict:
        """
        Sweep every Active plan using its own generation window.

        Per-plan failures are logged and counted; they never stop the sweep.
        """
        plans: list[RecurringPlan] = []
        offset = 0
        while True:
            page = await self.plan_repo.list(
                status=PlanStatus.ACTIVE, limit=SWEEP_PAGE_SIZE, offset=offset
            )
            plans.extend(page)
            if len(page) < SWEEP_PAGE_SIZE:
                break
            offset += SWEEP_PAGE_SIZE

        created_count = 0
        failed: list[str] = []
        for plan in plans:
            try:
                result = await self.generate(plan.id, plan.generation_window_days)
                created_count += result.created_count
            except DispatchError as e:
                failed.append(str(plan.id))
                logger.error(f"Occurrence sweep failed for plan {plan.id}: {e.message}")

        logger.info(
            f"Occurrence sweep finished: {len(plans)} plans, "
            f"{created_count} occurrences created, {len(failed)} failed"
        )
        return {"plans": len(plans), "created_count": created_count, "failed": failed}
