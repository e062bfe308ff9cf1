"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from dispatch.core.config import get_settings
from dispatch.interfaces.activity_log_repository import IActivityLogRepository
from dispatch.interfaces.clock import IClock
from dispatch.interfaces.occurrence_repository import IOccurrenceRepository
from dispatch.interfaces.recurring_plan_repository import IRecurringPlanRepository
from dispatch.interfaces.visit_service import IVisitService
from dispatch.services.activity_logger import ActivityRecorder
from dispatch.services.occurrence_generator import OccurrenceGenerator
from dispatch.services.occurrence_lifecycle import OccurrenceLifecycleManager
from dispatch.services.plan_lifecycle import PlanLifecycleController


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_recurring_plan_repository() -> IRecurringPlanRepository:
    """Get recurring plan repository instance."""
    from dispatch.infrastructure.local.recurring_plan_repository import (
        SqliteRecurringPlanRepository,
    )
    return SqliteRecurringPlanRepository()


@lru_cache()
def get_occurrence_repository() -> IOccurrenceRepository:
    """Get occurrence repository instance."""
    from dispatch.infrastructure.local.occurrence_repository import SqliteOccurrenceRepository
    return SqliteOccurrenceRepository()


@lru_cache()
def get_activity_log_repository() -> IActivityLogRepository:
    """Get activity log repository instance."""
    from dispatch.infrastructure.local.activity_log_repository import (
        SqliteActivityLogRepository,
    )
    return SqliteActivityLogRepository()


# ===========================================
# Collaborator Dependencies
# ===========================================


@lru_cache()
def get_clock() -> IClock:
    """Get clock instance."""
    from dispatch.infrastructure.local.system_clock import SystemClock
    return SystemClock()


@lru_cache()
def get_visit_service() -> IVisitService:
    """Get visit service: remote over HTTP when configured, local store otherwise."""
    settings = get_settings()
    if settings.uses_remote_visit_service:
        from dispatch.infrastructure.http.visit_client import HttpVisitService
        return HttpVisitService(settings)
    else:
        from dispatch.infrastructure.local.visit_service import SqliteVisitService
        return SqliteVisitService()


# ===========================================
# Service Dependencies
# ===========================================


@lru_cache()
def get_activity_recorder() -> ActivityRecorder:
    return ActivityRecorder(get_activity_log_repository())


@lru_cache()
def get_occurrence_generator() -> OccurrenceGenerator:
    return OccurrenceGenerator(
        plan_repo=get_recurring_plan_repository(),
        occurrence_repo=get_occurrence_repository(),
        clock=get_clock(),
        activity=get_activity_recorder(),
    )


@lru_cache()
def get_plan_lifecycle() -> PlanLifecycleController:
    return PlanLifecycleController(
        plan_repo=get_recurring_plan_repository(),
        generator=get_occurrence_generator(),
        clock=get_clock(),
        activity=get_activity_recorder(),
    )


@lru_cache()
def get_occurrence_lifecycle() -> OccurrenceLifecycleManager:
    return OccurrenceLifecycleManager(
        occurrence_repo=get_occurrence_repository(),
        plan_repo=get_recurring_plan_repository(),
        visit_service=get_visit_service(),
        clock=get_clock(),
        activity=get_activity_recorder(),
    )


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

RecurringPlanRepo = Annotated[IRecurringPlanRepository, Depends(get_recurring_plan_repository)]
OccurrenceRepo = Annotated[IOccurrenceRepository, Depends(get_occurrence_repository)]
ActivityLogRepo = Annotated[IActivityLogRepository, Depends(get_activity_log_repository)]
PlanLifecycle = Annotated[PlanLifecycleController, Depends(get_plan_lifecycle)]
OccurrenceLifecycle = Annotated[OccurrenceLifecycleManager, Depends(get_occurrence_lifecycle)]
