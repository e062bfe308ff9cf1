"""Abstract interfaces for infrastructure abstraction."""

from dispatch.interfaces.activity_log_repository import IActivityLogRepository
from dispatch.interfaces.clock import IClock
from dispatch.interfaces.occurrence_repository import IOccurrenceRepository
from dispatch.interfaces.recurring_plan_repository import IRecurringPlanRepository
from dispatch.interfaces.visit_service import IVisitService

__all__ = [
    "IActivityLogRepository",
    "IClock",
    "IOccurrenceRepository",
    "IRecurringPlanRepository",
    "IVisitService",
]
