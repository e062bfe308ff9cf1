"""
SQLite implementation of occurrence repository.

Dedup relies on the UNIQUE(plan_id, occurrence_date) constraint; status
transitions are compare-and-set on ``status = 'planned'``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError

from dispatch.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from dispatch.infrastructure.local.database import (
    RecurringOccurrenceORM,
    RecurringPlanORM,
    get_session_factory,
    to_db_datetime,
    utcnow_naive,
)
from dispatch.interfaces.occurrence_repository import IOccurrenceRepository
from dispatch.models.enums import OccurrenceStatus
from dispatch.models.occurrence import (
    OccurrenceDraft,
    OccurrenceTimesUpdate,
    RecurringOccurrence,
)


class SqliteOccurrenceRepository(IOccurrenceRepository):
    """SQLite implementation of occurrence repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: RecurringOccurrenceORM) -> RecurringOccurrence:
        """Convert ORM object to Pydantic model."""
        return RecurringOccurrence.model_validate(orm, from_attributes=True)

    async def _get_orm(self, session, occurrence_id: UUID) -> Optional[RecurringOccurrenceORM]:
        result = await session.execute(
            select(RecurringOccurrenceORM).where(
                RecurringOccurrenceORM.id == str(occurrence_id)
            )
        )
        return result.scalar_one_or_none()

    async def _transition(
        self, occurrence_id: UUID, action: str, **values
    ) -> RecurringOccurrence:
        """Apply ``values`` only if the occurrence is still planned."""
        async with self._session_factory() as session:
            orm = await self._get_orm(session, occurrence_id)
            if not orm:
                raise NotFoundError(f"Occurrence {occurrence_id} not found")

            result = await session.execute(
                update(RecurringOccurrenceORM)
                .where(
                    and_(
                        RecurringOccurrenceORM.id == orm.id,
                        RecurringOccurrenceORM.status == OccurrenceStatus.PLANNED.value,
                    )
                )
                .values(updated_at=utcnow_naive(), **values)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise InvalidStateError(
                    f"Can only {action} planned occurrences "
                    f"(occurrence {occurrence_id} is {orm.status})",
                    current_state=orm.status,
                )
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, occurrence_id: UUID) -> Optional[RecurringOccurrence]:
        """Get an occurrence by ID."""
        async with self._session_factory() as session:
            orm = await self._get_orm(session, occurrence_id)
            return self._orm_to_model(orm) if orm else None

    async def list_by_plan(
        self,
        plan_id: UUID,
        status: Optional[OccurrenceStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[RecurringOccurrence]:
        """List a plan's occurrences ordered by start time."""
        async with self._session_factory() as session:
            conditions = [RecurringOccurrenceORM.plan_id == str(plan_id)]
            if status is not None:
                conditions.append(RecurringOccurrenceORM.status == status.value)
            if start_date is not None:
                conditions.append(RecurringOccurrenceORM.occurrence_date >= start_date)
            if end_date is not None:
                conditions.append(RecurringOccurrenceORM.occurrence_date <= end_date)

            result = await session.execute(
                select(RecurringOccurrenceORM)
                .where(and_(*conditions))
                .order_by(RecurringOccurrenceORM.occurrence_start_at.asc())
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def find_existing_dates(self, plan_id: UUID, dates: Iterable[date]) -> set[date]:
        """Return which of ``dates`` already have an occurrence (any status)."""
        wanted = set(dates)
        if not wanted:
            return set()
        async with self._session_factory() as session:
            result = await session.execute(
                select(RecurringOccurrenceORM.occurrence_date).where(
                    and_(
                        RecurringOccurrenceORM.plan_id == str(plan_id),
                        RecurringOccurrenceORM.occurrence_date.in_(wanted),
                    )
                )
            )
            return set(result.scalars().all())

    async def create_batch(
        self,
        plan_id: UUID,
        drafts: list[OccurrenceDraft],
        generated_through: date,
    ) -> list[RecurringOccurrence]:
        """Insert all drafts and advance the plan watermark in one transaction."""
        async with self._session_factory() as session:
            plan_result = await session.execute(
                select(RecurringPlanORM).where(RecurringPlanORM.id == str(plan_id))
            )
            plan = plan_result.scalar_one_or_none()
            if not plan:
                raise NotFoundError(f"RecurringPlan {plan_id} not found")

            orms = [
                RecurringOccurrenceORM(
                    id=str(uuid4()),
                    plan_id=str(plan_id),
                    occurrence_date=draft.occurrence_date,
                    occurrence_start_at=to_db_datetime(draft.start_at),
                    occurrence_end_at=to_db_datetime(draft.end_at),
                    arrival_window_start=to_db_datetime(draft.arrival_window_start),
                    arrival_window_end=to_db_datetime(draft.arrival_window_end),
                    status=OccurrenceStatus.PLANNED.value,
                )
                for draft in sorted(drafts, key=lambda d: d.occurrence_date)
            ]
            session.add_all(orms)

            if plan.last_generated_through is None or plan.last_generated_through < generated_through:
                plan.last_generated_through = generated_through
                plan.updated_at = utcnow_naive()

            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(
                    f"Occurrence already exists for plan {plan_id} on one of the generated dates",
                    details={"dates": [d.occurrence_date.isoformat() for d in drafts]},
                ) from exc

            for orm in orms:
                await session.refresh(orm)
            return [self._orm_to_model(orm) for orm in orms]

    async def mark_skipped(
        self, occurrence_id: UUID, reason: str, now: datetime
    ) -> RecurringOccurrence:
        return await self._transition(
            occurrence_id,
            "skip",
            status=OccurrenceStatus.SKIPPED.value,
            skip_reason=reason,
            skipped_at=to_db_datetime(now),
        )

    async def mark_generated(
        self, occurrence_id: UUID, job_visit_id: UUID, now: datetime
    ) -> RecurringOccurrence:
        return await self._transition(
            occurrence_id,
            "generate visits for",
            status=OccurrenceStatus.GENERATED.value,
            job_visit_id=str(job_visit_id),
            generated_at=to_db_datetime(now),
        )

    async def update_times(
        self, occurrence_id: UUID, update: OccurrenceTimesUpdate
    ) -> RecurringOccurrence:
        """Move a planned occurrence in place (ConflictError on date collision)."""
        async with self._session_factory() as session:
            orm = await self._get_orm(session, occurrence_id)
            if not orm:
                raise NotFoundError(f"Occurrence {occurrence_id} not found")
            if orm.status != OccurrenceStatus.PLANNED.value:
                raise InvalidStateError(
                    f"Can only reschedule planned occurrences "
                    f"(occurrence {occurrence_id} is {orm.status})",
                    current_state=orm.status,
                )

            if update.occurrence_date != orm.occurrence_date:
                clash = await session.execute(
                    select(RecurringOccurrenceORM.id).where(
                        and_(
                            RecurringOccurrenceORM.plan_id == orm.plan_id,
                            RecurringOccurrenceORM.occurrence_date == update.occurrence_date,
                            RecurringOccurrenceORM.id != orm.id,
                        )
                    )
                )
                clash_id = clash.scalar_one_or_none()
                if clash_id:
                    raise ConflictError(
                        f"Occurrence {clash_id} already scheduled on "
                        f"{update.occurrence_date.isoformat()} for this plan",
                        conflicting_date=update.occurrence_date,
                        details={"conflicting_occurrence_id": clash_id},
                    )

            orm.occurrence_date = update.occurrence_date
            orm.occurrence_start_at = to_db_datetime(update.occurrence_start_at)
            orm.occurrence_end_at = to_db_datetime(update.occurrence_end_at)
            orm.arrival_window_start = to_db_datetime(update.arrival_window_start)
            orm.arrival_window_end = to_db_datetime(update.arrival_window_end)
            orm.updated_at = utcnow_naive()

            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(
                    f"Another occurrence of this plan was scheduled on "
                    f"{update.occurrence_date.isoformat()}",
                    conflicting_date=update.occurrence_date,
                ) from exc

            await session.refresh(orm)
            return self._orm_to_model(orm)
