"""
Shared pytest fixtures.

Repositories run against an in-memory SQLite database; the clock is fixed so
date windows are deterministic.
"""

import os

os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DEBUG", "false")

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dispatch.infrastructure.local.activity_log_repository import SqliteActivityLogRepository
from dispatch.infrastructure.local.database import Base
from dispatch.infrastructure.local.occurrence_repository import SqliteOccurrenceRepository
from dispatch.infrastructure.local.recurring_plan_repository import SqliteRecurringPlanRepository
from dispatch.interfaces.clock import IClock
from dispatch.models.constraints import ArrivalAnytime, FinishWhenDone
from dispatch.models.enums import Frequency
from dispatch.models.recurring_plan import LineItemTemplate, RecurringPlanCreate, RecurringRule
from dispatch.utils.datetime_utils import local_today

UTC = timezone.utc

# Saturday 2025-03-01 09:00 in America/Chicago (CST, UTC-6)
FIXED_NOW = datetime(2025, 3, 1, 15, 0, tzinfo=UTC)
TODAY = date(2025, 3, 1)


class FixedClock(IClock):
    """Clock pinned to a settable instant."""

    def __init__(self, now: datetime = FIXED_NOW):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def today(self, tz_name: str) -> date:
        return local_today(tz_name, self._now)

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self._now = self._now + timedelta(days=days, hours=hours)


@pytest_asyncio.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def plan_repo(session_factory):
    return SqliteRecurringPlanRepository(session_factory=session_factory)


@pytest.fixture
def occurrence_repo(session_factory):
    return SqliteOccurrenceRepository(session_factory=session_factory)


@pytest.fixture
def activity_repo(session_factory):
    return SqliteActivityLogRepository(session_factory=session_factory)


@pytest.fixture
def make_plan_create():
    """Factory for plan payloads; defaults to a daily plan starting 2025-03-01 00:00 local."""

    def _make(
        frequency: Frequency = Frequency.DAILY,
        interval: int = 1,
        by_weekday=None,
        by_month_day=None,
        by_month=None,
        arrival=None,
        finish=None,
        **overrides,
    ) -> RecurringPlanCreate:
        rule = RecurringRule(
            frequency=frequency,
            interval=interval,
            by_weekday=by_weekday,
            by_month_day=by_month_day,
            by_month=by_month,
            arrival_constraint=arrival or ArrivalAnytime(),
            finish_constraint=finish or FinishWhenDone(),
        )
        data = {
            "client_id": uuid4(),
            "name": "Monthly HVAC Maintenance",
            "description": "Filter change and coil inspection",
            "address": "1200 Main St, Springfield, IL",
            "starts_at": datetime(2025, 3, 1, 6, 0, tzinfo=UTC),
            "timezone": "America/Chicago",
            "generation_window_days": 90,
            "min_advance_days": 0,
            "rule": rule,
            "line_items": [
                LineItemTemplate(name="Filter replacement", quantity=2, unit_price=15.5),
                LineItemTemplate(name="Labor", quantity=1.5, unit_price=80, sort_order=1),
            ],
        }
        data.update(overrides)
        return RecurringPlanCreate(**data)

    return _make
