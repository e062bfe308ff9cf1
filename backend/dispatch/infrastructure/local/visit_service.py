"""
SQLite-backed visit service.

Stores job visits in the local database; used when no remote visit service
is configured.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from dispatch.core.exceptions import ExternalServiceError, InvalidStateError
from dispatch.core.logger import setup_logger
from dispatch.infrastructure.local.database import (
    JobVisitORM,
    get_session_factory,
    to_db_datetime,
)
from dispatch.interfaces.visit_service import IVisitService
from dispatch.models.visit import JobVisit, VisitCreate
from dispatch.utils.datetime_utils import format_hhmm

logger = setup_logger(__name__)


class SqliteVisitService(IVisitService):
    """Local visit store."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    async def create_visit(self, data: VisitCreate) -> JobVisit:
        async with self._session_factory() as session:
            orm = JobVisitORM(
                id=str(uuid4()),
                plan_id=str(data.plan_id),
                occurrence_id=str(data.occurrence_id),
                client_id=str(data.client_id),
                name=data.name,
                address=data.address,
                priority=data.priority.value,
                status="Scheduled",
                scheduled_start_at=to_db_datetime(data.scheduled_start_at),
                scheduled_end_at=to_db_datetime(data.scheduled_end_at),
                arrival_constraint=data.arrival_constraint,
                finish_constraint=data.finish_constraint,
                arrival_time=format_hhmm(data.arrival_time),
                arrival_window_start=format_hhmm(data.arrival_window_start),
                arrival_window_end=format_hhmm(data.arrival_window_end),
                finish_time=format_hhmm(data.finish_time),
                line_items=[item.model_dump(mode="json") for item in data.line_items],
                subtotal=data.subtotal,
                billing_mode=data.billing_mode.value,
                invoice_timing=data.invoice_timing.value,
                auto_invoice=data.auto_invoice,
            )
            session.add(orm)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise InvalidStateError(
                    f"A visit already exists for occurrence {data.occurrence_id}",
                    details={"occurrence_id": str(data.occurrence_id)},
                ) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(f"Visit creation failed for occurrence {data.occurrence_id}: {exc}")
                raise ExternalServiceError(
                    "Visit creation failed; the operation can be retried"
                ) from exc
            await session.refresh(orm)
            return JobVisit.model_validate(orm, from_attributes=True)
