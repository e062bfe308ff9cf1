"""
Arrival and finish constraint variants.

Each constraint is a tagged variant discriminated by ``kind``; the payload a
variant needs is required on that variant only.
"""

from __future__ import annotations

from datetime import time
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class ArrivalAnytime(BaseModel):
    """No arrival restriction."""

    kind: Literal["anytime"] = "anytime"


class ArrivalAt(BaseModel):
    """Arrive at an exact time."""

    kind: Literal["at"] = "at"
    at: time


class ArrivalBetween(BaseModel):
    """Arrive within a window."""

    kind: Literal["between"] = "between"
    start: time
    end: time

    @model_validator(mode="after")
    def validate_window(self):
        if self.end <= self.start:
            raise ValueError("arrival window end must be after its start")
        return self


class ArrivalBy(BaseModel):
    """Arrive no later than a deadline."""

    kind: Literal["by"] = "by"
    deadline: time


class FinishWhenDone(BaseModel):
    """Visit ends whenever the work is done."""

    kind: Literal["when_done"] = "when_done"


class FinishAt(BaseModel):
    """Finish at an exact time."""

    kind: Literal["at"] = "at"
    at: time


class FinishBy(BaseModel):
    """Finish no later than a deadline."""

    kind: Literal["by"] = "by"
    deadline: time


ArrivalConstraint = Annotated[
    Union[ArrivalAnytime, ArrivalAt, ArrivalBetween, ArrivalBy],
    Field(discriminator="kind"),
]

FinishConstraint = Annotated[
    Union[FinishWhenDone, FinishAt, FinishBy],
    Field(discriminator="kind"),
]


def arrival_fields(constraint: BaseModel) -> dict[str, Optional[time]]:
    """Flatten an arrival constraint into the column layout used for storage."""
    fields: dict[str, Optional[time]] = {
        "arrival_time": None,
        "arrival_window_start": None,
        "arrival_window_end": None,
    }
    if isinstance(constraint, ArrivalAt):
        fields["arrival_time"] = constraint.at
    elif isinstance(constraint, ArrivalBetween):
        fields["arrival_window_start"] = constraint.start
        fields["arrival_window_end"] = constraint.end
    elif isinstance(constraint, ArrivalBy):
        fields["arrival_window_end"] = constraint.deadline
    return fields


def finish_time_of(constraint: BaseModel) -> Optional[time]:
    if isinstance(constraint, FinishAt):
        return constraint.at
    if isinstance(constraint, FinishBy):
        return constraint.deadline
    return None


def build_arrival(
    kind: str,
    arrival_time: Optional[time] = None,
    window_start: Optional[time] = None,
    window_end: Optional[time] = None,
) -> Union[ArrivalAnytime, ArrivalAt, ArrivalBetween, ArrivalBy]:
    """Rebuild an arrival constraint from its flattened columns."""
    if kind == "at":
        return ArrivalAt(at=arrival_time)
    if kind == "between":
        return ArrivalBetween(start=window_start, end=window_end)
    if kind == "by":
        return ArrivalBy(deadline=window_end)
    return ArrivalAnytime()


def build_finish(
    kind: str, finish_time: Optional[time] = None
) -> Union[FinishWhenDone, FinishAt, FinishBy]:
    """Rebuild a finish constraint from its flattened columns."""
    if kind == "at":
        return FinishAt(at=finish_time)
    if kind == "by":
        return FinishBy(deadline=finish_time)
    return FinishWhenDone()
