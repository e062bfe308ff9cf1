"""
Activity log recording for plan and occurrence events.
"""

from __future__ import annotations

from typing import Any, Optional

from dispatch.core.logger import setup_logger
from dispatch.interfaces.activity_log_repository import IActivityLogRepository
from dispatch.models.activity_log import ActivityLogCreate

logger = setup_logger(__name__)


class ActivityRecorder:
    """Append audit entries; a failed write never fails the calling operation."""

    def __init__(self, repo: Optional[IActivityLogRepository] = None):
        self._repo = repo

    async def record(
        self,
        event_type: str,
        entity_type: str,
        entity_id: Any,
        changes: Optional[dict] = None,
        actor_id: Optional[str] = None,
    ) -> None:
        if self._repo is None:
            return
        try:
            await self._repo.create(
                ActivityLogCreate(
                    event_type=event_type,
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    changes=changes or {},
                    actor_id=actor_id,
                )
            )
        except Exception as e:
            logger.warning(f"Failed to record {event_type} for {entity_type} {entity_id}: {e}")
