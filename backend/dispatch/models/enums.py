"""
Enum definitions for the application.

These enums are used across models and provide type-safe status values.
"""

from enum import Enum


class PlanStatus(str, Enum):
    """Recurring plan lifecycle status."""

    ACTIVE = "Active"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class OccurrenceStatus(str, Enum):
    """
    Occurrence lifecycle status.

    PLANNED = materialized from the rule, not yet a visit
    GENERATED = promoted into a job visit
    COMPLETED = the visit was performed
    SKIPPED = deliberately not serviced (skip_reason set)
    CANCELLED = plan was cancelled/completed before servicing
    """

    PLANNED = "planned"
    GENERATED = "generated"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Weekday(str, Enum):
    """Weekday codes, ordered Monday first."""

    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"

    @property
    def index(self) -> int:
        """0=Monday ... 6=Sunday (matches date.weekday())."""
        return list(Weekday).index(self)


class Priority(str, Enum):
    """Plan priority."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"
    EMERGENCY = "Emergency"


class BillingMode(str, Enum):
    PER_VISIT = "per_visit"
    SUBSCRIPTION = "subscription"
    NONE = "none"


class InvoiceTiming(str, Enum):
    ON_COMPLETION = "on_completion"
    ON_SCHEDULE_DATE = "on_schedule_date"
    MANUAL = "manual"


class LineItemType(str, Enum):
    LABOR = "labor"
    MATERIAL = "material"
    EQUIPMENT = "equipment"
    OTHER = "other"
