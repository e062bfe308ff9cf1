"""
Integration tests for OccurrenceGenerator against SQLite.

The clock is fixed at 2025-03-01 09:00 America/Chicago.
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from dispatch.core.exceptions import InvalidStateError, NotFoundError
from dispatch.infrastructure.local.occurrence_repository import SqliteOccurrenceRepository
from dispatch.models.enums import Frequency, PlanStatus, Weekday
from dispatch.models.occurrence import OccurrenceDraft
from dispatch.services.activity_logger import ActivityRecorder
from dispatch.services.occurrence_generator import OccurrenceGenerator

UTC = timezone.utc
TODAY = date(2025, 3, 1)


@pytest.fixture
def generator(plan_repo, occurrence_repo, clock, activity_repo):
    return OccurrenceGenerator(
        plan_repo=plan_repo,
        occurrence_repo=occurrence_repo,
        clock=clock,
        activity=ActivityRecorder(activity_repo),
    )


@pytest.mark.asyncio
async def test_generates_daily_window(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(make_plan_create())

    result = await generator.generate(plan.id, days_ahead=10)

    assert result.created_count == 11
    assert result.window_start == TODAY
    assert result.window_end == date(2025, 3, 11)
    occurrences = await occurrence_repo.list_by_plan(plan.id)
    assert [o.occurrence_date for o in occurrences] == [TODAY + timedelta(days=i) for i in range(11)]
    # 09:00 CST
    assert occurrences[0].occurrence_start_at == datetime(2025, 3, 1, 15, 0, tzinfo=UTC)
    assert (await plan_repo.get(plan.id)).last_generated_through == date(2025, 3, 11)


@pytest.mark.asyncio
async def test_generation_is_idempotent(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(make_plan_create())

    await generator.generate(plan.id, days_ahead=10)
    before = await occurrence_repo.list_by_plan(plan.id)
    second = await generator.generate(plan.id, days_ahead=10)
    after = await occurrence_repo.list_by_plan(plan.id)

    assert second.created_count == 0
    assert [o.id for o in after] == [o.id for o in before]


@pytest.mark.asyncio
async def test_existing_dates_are_skipped(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(make_plan_create())
    start = datetime(2025, 3, 5, 15, 0, tzinfo=UTC)
    await occurrence_repo.create_batch(
        plan.id,
        [OccurrenceDraft(occurrence_date=date(2025, 3, 5), start_at=start, end_at=start + timedelta(hours=2))],
        date(2025, 2, 28),
    )

    result = await generator.generate(plan.id, days_ahead=10)

    assert result.created_count == 10
    assert result.skipped_existing == 1
    assert len(await occurrence_repo.list_by_plan(plan.id)) == 11


@pytest.mark.asyncio
async def test_resumes_from_watermark(generator, plan_repo, clock, make_plan_create):
    plan = await plan_repo.create(make_plan_create())
    await generator.generate(plan.id, days_ahead=10)

    clock.advance(days=1)
    result = await generator.generate(plan.id, days_ahead=20)

    assert result.window_start == date(2025, 3, 12)
    assert result.window_end == date(2025, 3, 22)
    assert result.created_count == 11


@pytest.mark.asyncio
async def test_window_containment(generator, plan_repo, occurrence_repo, make_plan_create):
    starts_at = datetime(2025, 3, 4, 20, 0, tzinfo=UTC)  # 14:00 CST
    ends_at = datetime(2025, 3, 9, 6, 0, tzinfo=UTC)  # midnight local
    plan = await plan_repo.create(make_plan_create(starts_at=starts_at, ends_at=ends_at))

    await generator.generate(plan.id, days_ahead=30)

    occurrences = await occurrence_repo.list_by_plan(plan.id)
    # Mar 4 at 09:00 falls before the plan starts
    assert [o.occurrence_date for o in occurrences] == [date(2025, 3, d) for d in (5, 6, 7, 8)]
    for occurrence in occurrences:
        assert starts_at <= occurrence.occurrence_start_at < ends_at
        assert occurrence.occurrence_date <= TODAY + timedelta(days=plan.generation_window_days)


@pytest.mark.asyncio
async def test_generation_window_days_caps_days_ahead(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(make_plan_create(generation_window_days=5))

    result = await generator.generate(plan.id, days_ahead=30)

    assert result.window_end == date(2025, 3, 6)
    assert max(o.occurrence_date for o in await occurrence_repo.list_by_plan(plan.id)) == date(2025, 3, 6)


@pytest.mark.asyncio
async def test_advance_notice_floor(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(make_plan_create(min_advance_days=14))

    result = await generator.generate(plan.id, days_ahead=30)

    occurrences = await occurrence_repo.list_by_plan(plan.id)
    assert result.created_count == 17
    assert min(o.occurrence_date for o in occurrences) == date(2025, 3, 15)
    assert all(o.occurrence_date >= TODAY + timedelta(days=14) for o in occurrences)


@pytest.mark.asyncio
async def test_weekly_completeness(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(
        make_plan_create(frequency=Frequency.WEEKLY, by_weekday=[Weekday.MO, Weekday.WE, Weekday.FR])
    )

    await generator.generate(plan.id, days_ahead=28)

    dates = [o.occurrence_date for o in await occurrence_repo.list_by_plan(plan.id)]
    assert len(dates) == 12
    for offset in range(0, 20):
        start = date(2025, 3, 3) + timedelta(days=offset)
        window = [d for d in dates if start <= d <= start + timedelta(days=6)]
        assert sorted(d.weekday() for d in window) == [0, 2, 4]


@pytest.mark.asyncio
async def test_monthly_day_31_skips_april(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(
        make_plan_create(frequency=Frequency.MONTHLY, by_month_day=31, generation_window_days=120)
    )

    await generator.generate(plan.id, days_ahead=120)

    dates = [o.occurrence_date for o in await occurrence_repo.list_by_plan(plan.id)]
    assert dates == [date(2025, 3, 31), date(2025, 5, 31)]


@pytest.mark.asyncio
async def test_paused_plan_refuses(generator, plan_repo, occurrence_repo, make_plan_create):
    plan = await plan_repo.create(make_plan_create())
    await plan_repo.transition_status(plan.id, {PlanStatus.ACTIVE}, PlanStatus.PAUSED)

    with pytest.raises(InvalidStateError) as exc_info:
        await generator.generate(plan.id, days_ahead=10)

    assert exc_info.value.current_state == "Paused"
    assert await occurrence_repo.list_by_plan(plan.id) == []


@pytest.mark.asyncio
async def test_unknown_plan(generator):
    with pytest.raises(NotFoundError):
        await generator.generate(uuid4())


@pytest.mark.asyncio
async def test_concurrent_insert_is_retried(plan_repo, session_factory, clock, make_plan_create):
    """Another writer inserts a date between our read and our write."""

    class RacingRepository(SqliteOccurrenceRepository):
        raced = False

        async def find_existing_dates(self, plan_id, dates):
            dates = list(dates)
            existing = await super().find_existing_dates(plan_id, dates)
            if not self.raced and dates:
                self.raced = True
                first = min(dates)
                start = datetime(first.year, first.month, first.day, 15, 0, tzinfo=UTC)
                await super().create_batch(
                    plan_id,
                    [OccurrenceDraft(occurrence_date=first, start_at=start, end_at=start + timedelta(hours=2))],
                    first - timedelta(days=1),
                )
            return existing

    occurrence_repo = RacingRepository(session_factory=session_factory)
    generator = OccurrenceGenerator(plan_repo=plan_repo, occurrence_repo=occurrence_repo, clock=clock)
    plan = await plan_repo.create(make_plan_create())

    result = await generator.generate(plan.id, days_ahead=4)

    assert result.created_count == 4
    assert result.skipped_existing == 1
    dates = [o.occurrence_date for o in await occurrence_repo.list_by_plan(plan.id)]
    assert dates == [date(2025, 3, d) for d in range(1, 6)]


@pytest.mark.asyncio
async def test_generation_is_logged(generator, plan_repo, activity_repo, make_plan_create):
    plan = await plan_repo.create(make_plan_create())

    await generator.generate(plan.id, days_ahead=3)

    entries = await activity_repo.list_for_entity("recurring_plan", str(plan.id))
    assert [e.event_type for e in entries] == ["occurrences_generated"]
    assert entries[0].changes["count"] == 4


@pytest.mark.asyncio
async def test_sweep_covers_active_plans_only(generator, plan_repo, occurrence_repo, make_plan_create):
    first = await plan_repo.create(make_plan_create(generation_window_days=3))
    second = await plan_repo.create(make_plan_create(generation_window_days=5))
    paused = await plan_repo.create(make_plan_create())
    await plan_repo.transition_status(paused.id, {PlanStatus.ACTIVE}, PlanStatus.PAUSED)

    summary = await generator.generate_all_active()

    assert summary == {"plans": 2, "created_count": 4 + 6, "failed": []}
    assert len(await occurrence_repo.list_by_plan(first.id)) == 4
    assert len(await occurrence_repo.list_by_plan(second.id)) == 6
    assert await occurrence_repo.list_by_plan(paused.id) == []
