"""
SQLite implementation of activity log repository.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import and_, select

from dispatch.infrastructure.local.database import ActivityLogORM, get_session_factory
from dispatch.interfaces.activity_log_repository import IActivityLogRepository
from dispatch.models.activity_log import ActivityLogCreate, ActivityLogEntry


class SqliteActivityLogRepository(IActivityLogRepository):
    """SQLite implementation of activity log repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    async def create(self, data: ActivityLogCreate) -> ActivityLogEntry:
        async with self._session_factory() as session:
            orm = ActivityLogORM(
                id=str(uuid4()),
                event_type=data.event_type,
                entity_type=data.entity_type,
                entity_id=data.entity_id,
                changes=data.changes,
                actor_id=data.actor_id,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return ActivityLogEntry.model_validate(orm, from_attributes=True)

    async def list_for_entity(
        self, entity_type: str, entity_id: str, limit: int = 50
    ) -> list[ActivityLogEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ActivityLogORM)
                .where(
                    and_(
                        ActivityLogORM.entity_type == entity_type,
                        ActivityLogORM.entity_id == entity_id,
                    )
                )
                .order_by(ActivityLogORM.created_at.desc())
                .limit(limit)
            )
            return [
                ActivityLogEntry.model_validate(orm, from_attributes=True)
                for orm in result.scalars().all()
            ]
