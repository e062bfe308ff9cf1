"""
Occurrence API endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from dispatch.api.deps import OccurrenceLifecycle, OccurrenceRepo
from dispatch.api.errors import to_http_exception
from dispatch.core.exceptions import DispatchError
from dispatch.models.occurrence import (
    BulkOperationResult,
    BulkRescheduleRequest,
    BulkSkipRequest,
    RecurringOccurrence,
    RescheduleOccurrenceRequest,
    SkipOccurrenceRequest,
)
from dispatch.models.visit import VisitGenerationResult

router = APIRouter()


@router.post("/bulk-skip", response_model=BulkOperationResult)
async def bulk_skip_occurrences(
    payload: BulkSkipRequest,
    lifecycle: OccurrenceLifecycle,
) -> BulkOperationResult:
    """Skip several occurrences; failures are reported per item."""
    try:
        return await lifecycle.bulk_skip(payload.occurrence_ids, payload.skip_reason)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.post("/bulk-reschedule", response_model=BulkOperationResult)
async def bulk_reschedule_occurrences(
    payload: BulkRescheduleRequest,
    lifecycle: OccurrenceLifecycle,
) -> BulkOperationResult:
    """Shift several occurrences by a number of days; failures are reported per item."""
    try:
        return await lifecycle.bulk_reschedule(payload.occurrence_ids, payload.offset_days)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{occurrence_id}", response_model=RecurringOccurrence)
async def get_occurrence(occurrence_id: UUID, repo: OccurrenceRepo) -> RecurringOccurrence:
    result = await repo.get(occurrence_id)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Occurrence {occurrence_id} not found",
        )
    return result


@router.post("/{occurrence_id}/skip", response_model=RecurringOccurrence)
async def skip_occurrence(
    occurrence_id: UUID,
    payload: SkipOccurrenceRequest,
    lifecycle: OccurrenceLifecycle,
) -> RecurringOccurrence:
    try:
        return await lifecycle.skip(occurrence_id, payload.skip_reason)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{occurrence_id}/reschedule", response_model=RecurringOccurrence)
async def reschedule_occurrence(
    occurrence_id: UUID,
    payload: RescheduleOccurrenceRequest,
    lifecycle: OccurrenceLifecycle,
) -> RecurringOccurrence:
    """Move an occurrence; 409 if another occurrence of the plan uses the new date."""
    try:
        return await lifecycle.reschedule(occurrence_id, payload.new_start_at, payload.new_end_at)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{occurrence_id}/generate-visit", response_model=VisitGenerationResult)
async def generate_visit(
    occurrence_id: UUID,
    lifecycle: OccurrenceLifecycle,
) -> VisitGenerationResult:
    """Promote a planned occurrence into a job visit."""
    try:
        return await lifecycle.generate_visit(occurrence_id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc
