"""
Arrival/finish constraint resolution.

Maps a candidate date plus the rule's constraints to concrete UTC instants.
All wall-clock arithmetic happens in the plan's timezone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from dispatch.core.config import Settings, get_settings
from dispatch.core.exceptions import ValidationError
from dispatch.core.logger import setup_logger
from dispatch.models.constraints import (
    ArrivalAnytime,
    ArrivalAt,
    ArrivalBetween,
    ArrivalBy,
    FinishAt,
    FinishBy,
    FinishWhenDone,
)
from dispatch.models.occurrence import ResolvedSchedule
from dispatch.utils.datetime_utils import local_datetime_to_utc, parse_hhmm

logger = setup_logger(__name__)


@dataclass(frozen=True)
class ScheduleDefaults:
    anytime_arrival: time
    arrival_by_lead: timedelta
    visit_duration: timedelta

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ScheduleDefaults":
        settings = settings or get_settings()
        return cls(
            anytime_arrival=parse_hhmm(settings.ANYTIME_ARRIVAL_TIME),
            arrival_by_lead=timedelta(minutes=settings.ARRIVAL_BY_LEAD_MINUTES),
            visit_duration=timedelta(minutes=settings.DEFAULT_VISIT_DURATION_MINUTES),
        )


def _require(value: Optional[time], field: str, kind: str) -> time:
    if value is None:
        raise ValidationError(f"{field} constraint '{kind}' requires a time", field=field)
    return value


class ConstraintResolver:
    """Resolve constraints into start/end instants and an optional arrival window."""

    def __init__(self, defaults: Optional[ScheduleDefaults] = None):
        self.defaults = defaults or ScheduleDefaults.from_settings()

    def resolve(
        self,
        day: date,
        tz_name: str,
        arrival,
        finish,
        duration: Optional[timedelta] = None,
    ) -> ResolvedSchedule:
        """
        Resolve one date.

        Args:
            day: Calendar date in the plan timezone
            tz_name: IANA timezone of the plan
            arrival: Arrival constraint variant
            finish: Finish constraint variant
            duration: Overrides the default visit length for ``when_done``

        Returns:
            ResolvedSchedule with UTC instants
        """
        window_start: Optional[datetime] = None
        window_end: Optional[datetime] = None

        if isinstance(arrival, ArrivalAnytime):
            start_at = local_datetime_to_utc(day, self.defaults.anytime_arrival, tz_name)
        elif isinstance(arrival, ArrivalAt):
            start_at = local_datetime_to_utc(
                day, _require(arrival.at, "arrival", "at"), tz_name
            )
        elif isinstance(arrival, ArrivalBetween):
            start = _require(arrival.start, "arrival", "between")
            end = _require(arrival.end, "arrival", "between")
            if end <= start:
                raise ValidationError(
                    "Arrival window end must be after its start", field="arrival_constraint"
                )
            start_at = local_datetime_to_utc(day, start, tz_name)
            window_start = start_at
            window_end = local_datetime_to_utc(day, end, tz_name)
        elif isinstance(arrival, ArrivalBy):
            deadline = datetime.combine(day, _require(arrival.deadline, "arrival", "by"))
            # Lead time never reaches into the previous day
            earliest = max(datetime.combine(day, time.min), deadline - self.defaults.arrival_by_lead)
            start_at = local_datetime_to_utc(earliest.date(), earliest.time(), tz_name)
            window_end = local_datetime_to_utc(day, deadline.time(), tz_name)
        else:
            raise ValidationError(
                f"Unknown arrival constraint: {arrival!r}", field="arrival_constraint"
            )

        if isinstance(finish, FinishWhenDone):
            end_at = start_at + (duration or self.defaults.visit_duration)
        elif isinstance(finish, (FinishAt, FinishBy)):
            finish_time = finish.at if isinstance(finish, FinishAt) else finish.deadline
            end_at = local_datetime_to_utc(
                day, _require(finish_time, "finish", finish.kind), tz_name
            )
            if end_at <= start_at:
                logger.debug(
                    f"Finish {finish_time} is not after start on {day}; "
                    f"using default visit duration"
                )
                end_at = start_at + self.defaults.visit_duration
        else:
            raise ValidationError(
                f"Unknown finish constraint: {finish!r}", field="finish_constraint"
            )

        return ResolvedSchedule(
            start_at=start_at,
            end_at=end_at,
            arrival_window_start=window_start,
            arrival_window_end=window_end,
        )
