"""
SQLite implementation of recurring plan repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select, update

from dispatch.core.exceptions import InvalidStateError, NotFoundError
from dispatch.infrastructure.local.database import (
    RecurringOccurrenceORM,
    RecurringPlanLineItemORM,
    RecurringPlanORM,
    RecurringRuleORM,
    get_session_factory,
    to_db_datetime,
    utcnow_naive,
)
from dispatch.models.constraints import (
    arrival_fields,
    build_arrival,
    build_finish,
    finish_time_of,
)
from dispatch.models.enums import OccurrenceStatus, PlanStatus
from dispatch.models.recurring_plan import (
    LineItemTemplate,
    RecurringPlan,
    RecurringPlanCreate,
    RecurringPlanUpdate,
    RecurringRule,
)
from dispatch.utils.datetime_utils import format_hhmm, parse_hhmm
from dispatch.interfaces.recurring_plan_repository import IRecurringPlanRepository

_PLAIN_FIELDS = (
    "name",
    "description",
    "address",
    "timezone",
    "generation_window_days",
    "min_advance_days",
    "auto_invoice",
)
_ENUM_FIELDS = ("priority", "billing_mode", "invoice_timing")


class SqliteRecurringPlanRepository(IRecurringPlanRepository):
    """SQLite implementation of recurring plan repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _parse_time(self, value: str | None):
        if not value:
            return None
        return parse_hhmm(value)

    def _rule_to_model(self, orm: RecurringRuleORM) -> RecurringRule:
        return RecurringRule(
            frequency=orm.frequency,
            interval=orm.interval,
            by_weekday=orm.by_weekday or None,
            by_month_day=orm.by_month_day,
            by_month=orm.by_month,
            arrival_constraint=build_arrival(
                orm.arrival_constraint,
                arrival_time=self._parse_time(orm.arrival_time),
                window_start=self._parse_time(orm.arrival_window_start),
                window_end=self._parse_time(orm.arrival_window_end),
            ),
            finish_constraint=build_finish(
                orm.finish_constraint,
                finish_time=self._parse_time(orm.finish_time),
            ),
        )

    def _apply_rule(self, orm: RecurringRuleORM, rule: RecurringRule) -> None:
        orm.frequency = rule.frequency.value
        orm.interval = rule.interval
        orm.by_weekday = [wd.value for wd in rule.by_weekday] if rule.by_weekday else None
        orm.by_month_day = rule.by_month_day
        orm.by_month = rule.by_month
        orm.arrival_constraint = rule.arrival_constraint.kind
        orm.finish_constraint = rule.finish_constraint.kind
        flattened = arrival_fields(rule.arrival_constraint)
        orm.arrival_time = format_hhmm(flattened["arrival_time"])
        orm.arrival_window_start = format_hhmm(flattened["arrival_window_start"])
        orm.arrival_window_end = format_hhmm(flattened["arrival_window_end"])
        orm.finish_time = format_hhmm(finish_time_of(rule.finish_constraint))

    def _line_item_orms(
        self, plan_id: str, items: list[LineItemTemplate]
    ) -> list[RecurringPlanLineItemORM]:
        return [
            RecurringPlanLineItemORM(
                id=str(uuid4()),
                plan_id=plan_id,
                name=item.name,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                item_type=item.item_type.value if item.item_type else None,
                sort_order=item.sort_order if item.sort_order else idx,
            )
            for idx, item in enumerate(items)
        ]

    async def _load(self, session, orm: RecurringPlanORM) -> RecurringPlan:
        """Assemble the plan model from its plan, rule and line item rows."""
        rule_result = await session.execute(
            select(RecurringRuleORM).where(RecurringRuleORM.plan_id == orm.id)
        )
        rule_orm = rule_result.scalar_one()
        items_result = await session.execute(
            select(RecurringPlanLineItemORM)
            .where(RecurringPlanLineItemORM.plan_id == orm.id)
            .order_by(RecurringPlanLineItemORM.sort_order.asc())
        )
        line_items = [
            LineItemTemplate(
                name=item.name,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                item_type=item.item_type,
                sort_order=item.sort_order or 0,
            )
            for item in items_result.scalars().all()
        ]
        return RecurringPlan(
            id=UUID(orm.id),
            client_id=UUID(orm.client_id),
            name=orm.name,
            description=orm.description,
            address=orm.address,
            coords=orm.coords,
            priority=orm.priority,
            status=orm.status,
            starts_at=orm.starts_at,
            ends_at=orm.ends_at,
            timezone=orm.timezone,
            generation_window_days=orm.generation_window_days,
            min_advance_days=orm.min_advance_days,
            last_generated_through=orm.last_generated_through,
            billing_mode=orm.billing_mode,
            invoice_timing=orm.invoice_timing,
            auto_invoice=bool(orm.auto_invoice),
            rule=self._rule_to_model(rule_orm),
            line_items=line_items,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    async def _get_orm(self, session, plan_id: UUID) -> Optional[RecurringPlanORM]:
        result = await session.execute(
            select(RecurringPlanORM).where(RecurringPlanORM.id == str(plan_id))
        )
        return result.scalar_one_or_none()

    async def create(self, data: RecurringPlanCreate) -> RecurringPlan:
        """Create a plan with its rule and template line items."""
        async with self._session_factory() as session:
            plan_id = str(uuid4())
            orm = RecurringPlanORM(
                id=plan_id,
                client_id=str(data.client_id),
                name=data.name,
                description=data.description,
                address=data.address,
                coords=data.coords.model_dump() if data.coords else None,
                priority=data.priority.value,
                status=PlanStatus.ACTIVE.value,
                starts_at=to_db_datetime(data.starts_at),
                ends_at=to_db_datetime(data.ends_at),
                timezone=data.timezone,
                generation_window_days=data.generation_window_days,
                min_advance_days=data.min_advance_days,
                last_generated_through=None,
                billing_mode=data.billing_mode.value,
                invoice_timing=data.invoice_timing.value,
                auto_invoice=data.auto_invoice,
            )
            rule_orm = RecurringRuleORM(id=str(uuid4()), plan_id=plan_id)
            self._apply_rule(rule_orm, data.rule)
            session.add(orm)
            session.add(rule_orm)
            session.add_all(self._line_item_orms(plan_id, data.line_items))
            await session.commit()
            await session.refresh(orm)
            return await self._load(session, orm)

    async def get(self, plan_id: UUID) -> Optional[RecurringPlan]:
        """Get a plan by ID."""
        async with self._session_factory() as session:
            orm = await self._get_orm(session, plan_id)
            return await self._load(session, orm) if orm else None

    async def list(
        self,
        status: Optional[PlanStatus] = None,
        client_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RecurringPlan]:
        """List plans, newest first."""
        async with self._session_factory() as session:
            conditions = []
            if status is not None:
                conditions.append(RecurringPlanORM.status == status.value)
            if client_id is not None:
                conditions.append(RecurringPlanORM.client_id == str(client_id))

            query = select(RecurringPlanORM)
            if conditions:
                query = query.where(and_(*conditions))
            query = query.order_by(RecurringPlanORM.created_at.desc()).limit(limit).offset(offset)
            result = await session.execute(query)
            return [await self._load(session, orm) for orm in result.scalars().all()]

    async def update(self, plan_id: UUID, update: RecurringPlanUpdate) -> RecurringPlan:
        """Update descriptive, scheduling, billing, rule and line item fields."""
        async with self._session_factory() as session:
            orm = await self._get_orm(session, plan_id)
            if not orm:
                raise NotFoundError(f"RecurringPlan {plan_id} not found")

            update_data = update.model_dump(exclude_unset=True)
            for field in _PLAIN_FIELDS:
                if field in update_data and update_data[field] is not None:
                    setattr(orm, field, update_data[field])
            for field in _ENUM_FIELDS:
                value = getattr(update, field)
                if field in update_data and value is not None:
                    setattr(orm, field, value.value)
            if "coords" in update_data:
                orm.coords = update.coords.model_dump() if update.coords else None
            if update.starts_at is not None:
                orm.starts_at = to_db_datetime(update.starts_at)
            if "ends_at" in update_data:
                # Explicit null clears the end date
                orm.ends_at = to_db_datetime(update.ends_at)

            if update.rule is not None:
                rule_result = await session.execute(
                    select(RecurringRuleORM).where(RecurringRuleORM.plan_id == orm.id)
                )
                self._apply_rule(rule_result.scalar_one(), update.rule)

            if update.line_items is not None:
                existing = await session.execute(
                    select(RecurringPlanLineItemORM).where(
                        RecurringPlanLineItemORM.plan_id == orm.id
                    )
                )
                for item in existing.scalars().all():
                    await session.delete(item)
                session.add_all(self._line_item_orms(orm.id, update.line_items))

            orm.updated_at = utcnow_naive()
            await session.commit()
            await session.refresh(orm)
            return await self._load(session, orm)

    async def transition_status(
        self,
        plan_id: UUID,
        expected: set[PlanStatus],
        new_status: PlanStatus,
        cancel_planned_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[RecurringPlan, int]:
        """
        Atomically move a plan to ``new_status`` and optionally cascade.

        The cascade cancels planned occurrences starting after ``now``; past
        planned rows are kept as history.
        """
        async with self._session_factory() as session:
            orm = await self._get_orm(session, plan_id)
            if not orm:
                raise NotFoundError(f"RecurringPlan {plan_id} not found")

            # Compare-and-set so a concurrent transition cannot be overwritten
            result = await session.execute(
                update(RecurringPlanORM)
                .where(
                    and_(
                        RecurringPlanORM.id == orm.id,
                        RecurringPlanORM.status.in_([s.value for s in expected]),
                    )
                )
                .values(status=new_status.value, updated_at=utcnow_naive())
            )
            if result.rowcount == 0:
                await session.rollback()
                raise InvalidStateError(
                    f"Cannot move plan {plan_id} from {orm.status} to {new_status.value}",
                    current_state=orm.status,
                )

            cascaded = 0
            if cancel_planned_reason is not None:
                stamp = to_db_datetime(now) if now else utcnow_naive()
                cascade = await session.execute(
                    update(RecurringOccurrenceORM)
                    .where(
                        and_(
                            RecurringOccurrenceORM.plan_id == orm.id,
                            RecurringOccurrenceORM.status == OccurrenceStatus.PLANNED.value,
                            RecurringOccurrenceORM.occurrence_start_at > stamp,
                        )
                    )
                    .values(
                        status=OccurrenceStatus.CANCELLED.value,
                        skip_reason=cancel_planned_reason,
                        cancelled_at=stamp,
                        updated_at=stamp,
                    )
                )
                cascaded = cascade.rowcount or 0

            await session.commit()
            await session.refresh(orm)
            return await self._load(session, orm), cascaded
