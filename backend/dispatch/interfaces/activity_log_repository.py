"""
Activity log repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from dispatch.models.activity_log import ActivityLogCreate, ActivityLogEntry


class IActivityLogRepository(ABC):
    """Abstract interface for activity log persistence."""

    @abstractmethod
    async def create(self, data: ActivityLogCreate) -> ActivityLogEntry:
        """Append an activity entry."""
        pass

    @abstractmethod
    async def list_for_entity(
        self, entity_type: str, entity_id: str, limit: int = 50
    ) -> list[ActivityLogEntry]:
        """Most recent entries for one entity, newest first."""
        pass
