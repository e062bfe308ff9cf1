"""Pydantic models (schemas) for the application."""

from dispatch.models.enums import (
    BillingMode,
    Frequency,
    InvoiceTiming,
    LineItemType,
    OccurrenceStatus,
    PlanStatus,
    Priority,
    Weekday,
)
from dispatch.models.constraints import (
    ArrivalAnytime,
    ArrivalAt,
    ArrivalBetween,
    ArrivalBy,
    FinishAt,
    FinishBy,
    FinishWhenDone,
)
from dispatch.models.recurring_plan import (
    LineItemTemplate,
    RecurringPlan,
    RecurringPlanCreate,
    RecurringPlanUpdate,
    RecurringRule,
)
from dispatch.models.occurrence import (
    BulkOperationResult,
    GenerationResult,
    OccurrenceDraft,
    RecurringOccurrence,
    ResolvedSchedule,
)
from dispatch.models.visit import JobVisit, VisitCreate, VisitGenerationResult
from dispatch.models.activity_log import ActivityLogCreate, ActivityLogEntry

__all__ = [
    # Enums
    "PlanStatus",
    "OccurrenceStatus",
    "Frequency",
    "Weekday",
    "Priority",
    "BillingMode",
    "InvoiceTiming",
    "LineItemType",
    # Constraints
    "ArrivalAnytime",
    "ArrivalAt",
    "ArrivalBetween",
    "ArrivalBy",
    "FinishWhenDone",
    "FinishAt",
    "FinishBy",
    # Plans
    "RecurringRule",
    "LineItemTemplate",
    "RecurringPlan",
    "RecurringPlanCreate",
    "RecurringPlanUpdate",
    # Occurrences
    "RecurringOccurrence",
    "OccurrenceDraft",
    "ResolvedSchedule",
    "GenerationResult",
    "BulkOperationResult",
    # Visits
    "VisitCreate",
    "JobVisit",
    "VisitGenerationResult",
    # Activity
    "ActivityLogCreate",
    "ActivityLogEntry",
]
