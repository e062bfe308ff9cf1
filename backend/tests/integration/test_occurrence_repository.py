"""
Integration tests for SqliteOccurrenceRepository.
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio

from dispatch.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from dispatch.models.enums import OccurrenceStatus
from dispatch.models.occurrence import OccurrenceDraft, OccurrenceTimesUpdate

UTC = timezone.utc
NOW = datetime(2025, 3, 1, 15, 0, tzinfo=UTC)


def _draft(day: date) -> OccurrenceDraft:
    start = datetime(day.year, day.month, day.day, 15, 0, tzinfo=UTC)
    return OccurrenceDraft(occurrence_date=day, start_at=start, end_at=start + timedelta(hours=2))


@pytest_asyncio.fixture
async def plan(plan_repo, make_plan_create):
    return await plan_repo.create(make_plan_create())


@pytest.mark.asyncio
async def test_create_batch_inserts_and_advances_watermark(plan, plan_repo, occurrence_repo):
    created = await occurrence_repo.create_batch(
        plan.id, [_draft(date(2025, 3, 3)), _draft(date(2025, 3, 2))], date(2025, 3, 10)
    )

    assert [o.occurrence_date for o in created] == [date(2025, 3, 2), date(2025, 3, 3)]
    assert all(o.status == OccurrenceStatus.PLANNED for o in created)
    assert (await plan_repo.get(plan.id)).last_generated_through == date(2025, 3, 10)


@pytest.mark.asyncio
async def test_watermark_never_regresses(plan, plan_repo, occurrence_repo):
    await occurrence_repo.create_batch(plan.id, [], date(2025, 3, 10))
    await occurrence_repo.create_batch(plan.id, [], date(2025, 3, 5))
    assert (await plan_repo.get(plan.id)).last_generated_through == date(2025, 3, 10)


@pytest.mark.asyncio
async def test_duplicate_date_rolls_back_whole_batch(plan, plan_repo, occurrence_repo):
    await occurrence_repo.create_batch(plan.id, [_draft(date(2025, 3, 1))], date(2025, 3, 1))

    with pytest.raises(ConflictError):
        await occurrence_repo.create_batch(
            plan.id, [_draft(date(2025, 3, 2)), _draft(date(2025, 3, 1))], date(2025, 3, 5)
        )

    occurrences = await occurrence_repo.list_by_plan(plan.id)
    assert [o.occurrence_date for o in occurrences] == [date(2025, 3, 1)]
    assert (await plan_repo.get(plan.id)).last_generated_through == date(2025, 3, 1)


@pytest.mark.asyncio
async def test_find_existing_dates(plan, occurrence_repo):
    await occurrence_repo.create_batch(
        plan.id, [_draft(date(2025, 3, 2)), _draft(date(2025, 3, 4))], date(2025, 3, 4)
    )
    existing = await occurrence_repo.find_existing_dates(
        plan.id, [date(2025, 3, 1), date(2025, 3, 2), date(2025, 3, 4)]
    )
    assert existing == {date(2025, 3, 2), date(2025, 3, 4)}
    assert await occurrence_repo.find_existing_dates(plan.id, []) == set()


@pytest.mark.asyncio
async def test_mark_skipped_only_from_planned(plan, occurrence_repo):
    [occurrence] = await occurrence_repo.create_batch(plan.id, [_draft(date(2025, 3, 2))], date(2025, 3, 2))

    skipped = await occurrence_repo.mark_skipped(occurrence.id, "Holiday", NOW)
    assert skipped.status == OccurrenceStatus.SKIPPED
    assert skipped.skip_reason == "Holiday"
    assert skipped.skipped_at == NOW

    with pytest.raises(InvalidStateError):
        await occurrence_repo.mark_generated(occurrence.id, uuid4(), NOW)


@pytest.mark.asyncio
async def test_mark_unknown_occurrence(occurrence_repo):
    with pytest.raises(NotFoundError):
        await occurrence_repo.mark_skipped(uuid4(), "Holiday", NOW)


@pytest.mark.asyncio
async def test_update_times_collision_leaves_rows_untouched(plan, occurrence_repo):
    first, second = await occurrence_repo.create_batch(
        plan.id, [_draft(date(2025, 3, 2)), _draft(date(2025, 3, 3))], date(2025, 3, 3)
    )

    with pytest.raises(ConflictError) as exc_info:
        await occurrence_repo.update_times(
            first.id,
            OccurrenceTimesUpdate(
                occurrence_date=date(2025, 3, 3),
                occurrence_start_at=datetime(2025, 3, 3, 18, 0, tzinfo=UTC),
                occurrence_end_at=datetime(2025, 3, 3, 20, 0, tzinfo=UTC),
            ),
        )
    assert exc_info.value.conflicting_date == date(2025, 3, 3)
    assert str(second.id) in exc_info.value.message

    assert await occurrence_repo.get(first.id) == first
    assert await occurrence_repo.get(second.id) == second


@pytest.mark.asyncio
async def test_list_by_plan_filters(plan, occurrence_repo):
    created = await occurrence_repo.create_batch(
        plan.id, [_draft(date(2025, 3, d)) for d in range(1, 6)], date(2025, 3, 5)
    )
    await occurrence_repo.mark_skipped(created[0].id, "Closed", NOW)

    planned = await occurrence_repo.list_by_plan(plan.id, status=OccurrenceStatus.PLANNED)
    assert len(planned) == 4

    ranged = await occurrence_repo.list_by_plan(
        plan.id, start_date=date(2025, 3, 2), end_date=date(2025, 3, 3)
    )
    assert [o.occurrence_date for o in ranged] == [date(2025, 3, 2), date(2025, 3, 3)]
