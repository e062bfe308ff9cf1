"""
Recurring plan API endpoints.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from dispatch.api.deps import ActivityLogRepo, OccurrenceRepo, PlanLifecycle, RecurringPlanRepo
from dispatch.api.errors import to_http_exception
from dispatch.core.exceptions import DispatchError
from dispatch.models.activity_log import ActivityLogEntry
from dispatch.models.enums import OccurrenceStatus, PlanStatus
from dispatch.models.occurrence import (
    GenerateOccurrencesRequest,
    GenerationResult,
    RecurringOccurrence,
)
from dispatch.models.recurring_plan import RecurringPlan, RecurringPlanCreate, RecurringPlanUpdate

router = APIRouter()


class RecurringPlanCreated(BaseModel):
    plan: RecurringPlan
    generation: GenerationResult


@router.post("", response_model=RecurringPlanCreated, status_code=status.HTTP_201_CREATED)
async def create_recurring_plan(
    payload: RecurringPlanCreate,
    lifecycle: PlanLifecycle,
) -> RecurringPlanCreated:
    """Create a recurring plan and generate its first window of occurrences."""
    try:
        plan, generation = await lifecycle.create_plan(payload)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc
    return RecurringPlanCreated(plan=plan, generation=generation)


@router.get("", response_model=list[RecurringPlan])
async def list_recurring_plans(
    repo: RecurringPlanRepo,
    status_filter: Optional[PlanStatus] = Query(None, alias="status", description="Filter by status"),
    client_id: Optional[UUID] = Query(None, description="Filter by client ID"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> list[RecurringPlan]:
    """List recurring plans."""
    return await repo.list(status=status_filter, client_id=client_id, limit=limit, offset=offset)


@router.get("/{plan_id}", response_model=RecurringPlan)
async def get_recurring_plan(plan_id: UUID, repo: RecurringPlanRepo) -> RecurringPlan:
    """Get a recurring plan by ID."""
    result = await repo.get(plan_id)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"RecurringPlan {plan_id} not found",
        )
    return result


@router.patch("/{plan_id}", response_model=RecurringPlan)
async def update_recurring_plan(
    plan_id: UUID,
    update: RecurringPlanUpdate,
    lifecycle: PlanLifecycle,
) -> RecurringPlan:
    """Update a recurring plan. Status changes use the lifecycle endpoints."""
    try:
        return await lifecycle.update_plan(plan_id, update)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{plan_id}/occurrences", response_model=list[RecurringOccurrence])
async def list_plan_occurrences(
    plan_id: UUID,
    repo: RecurringPlanRepo,
    occurrence_repo: OccurrenceRepo,
    status_filter: Optional[OccurrenceStatus] = Query(None, alias="status"),
) -> list[RecurringOccurrence]:
    """List a plan's occurrences ordered by start time."""
    if not await repo.get(plan_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"RecurringPlan {plan_id} not found",
        )
    return await occurrence_repo.list_by_plan(plan_id, status=status_filter)


@router.post("/{plan_id}/occurrences/generate", response_model=GenerationResult)
async def generate_occurrences(
    plan_id: UUID,
    lifecycle: PlanLifecycle,
    payload: Optional[GenerateOccurrencesRequest] = None,
) -> GenerationResult:
    """Generate missing occurrences (idempotent)."""
    payload = payload or GenerateOccurrencesRequest()
    try:
        return await lifecycle.generate_occurrences(plan_id, payload.days_ahead)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{plan_id}/pause", response_model=RecurringPlan)
async def pause_recurring_plan(plan_id: UUID, lifecycle: PlanLifecycle) -> RecurringPlan:
    try:
        return await lifecycle.pause(plan_id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{plan_id}/resume", response_model=RecurringPlan)
async def resume_recurring_plan(plan_id: UUID, lifecycle: PlanLifecycle) -> RecurringPlan:
    try:
        return await lifecycle.resume(plan_id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{plan_id}/cancel", response_model=RecurringPlan)
async def cancel_recurring_plan(plan_id: UUID, lifecycle: PlanLifecycle) -> RecurringPlan:
    """Cancel a plan; its future planned occurrences become cancelled."""
    try:
        return await lifecycle.cancel(plan_id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{plan_id}/complete", response_model=RecurringPlan)
async def complete_recurring_plan(plan_id: UUID, lifecycle: PlanLifecycle) -> RecurringPlan:
    """Complete a plan; its future planned occurrences become cancelled."""
    try:
        return await lifecycle.complete(plan_id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{plan_id}/activity", response_model=list[ActivityLogEntry])
async def list_plan_activity(
    plan_id: UUID,
    activity_repo: ActivityLogRepo,
    limit: int = Query(50, ge=1, le=500),
) -> list[ActivityLogEntry]:
    """Recent lifecycle events for a plan."""
    return await activity_repo.list_for_entity("recurring_plan", str(plan_id), limit=limit)
