"""
Integration tests for SqliteRecurringPlanRepository.
"""

from datetime import datetime, time, timezone
from uuid import uuid4

import pytest

from dispatch.core.exceptions import InvalidStateError, NotFoundError
from dispatch.models.constraints import ArrivalBetween, FinishBy
from dispatch.models.enums import Frequency, PlanStatus, Weekday
from dispatch.models.recurring_plan import LineItemTemplate, RecurringPlanUpdate, RecurringRule

UTC = timezone.utc


@pytest.mark.asyncio
async def test_create_round_trips_rule_and_line_items(plan_repo, make_plan_create):
    data = make_plan_create(
        frequency=Frequency.WEEKLY,
        by_weekday=[Weekday.TU, Weekday.TH],
        arrival=ArrivalBetween(start=time(8, 0), end=time(10, 0)),
        finish=FinishBy(deadline=time(12, 30)),
    )
    created = await plan_repo.create(data)

    assert created.status == PlanStatus.ACTIVE
    assert created.last_generated_through is None
    assert created.rule.by_weekday == [Weekday.TU, Weekday.TH]
    assert created.rule.arrival_constraint == ArrivalBetween(start=time(8, 0), end=time(10, 0))
    assert created.rule.finish_constraint == FinishBy(deadline=time(12, 30))
    assert [item.name for item in created.line_items] == ["Filter replacement", "Labor"]
    assert created.starts_at == datetime(2025, 3, 1, 6, 0, tzinfo=UTC)

    fetched = await plan_repo.get(created.id)
    assert fetched == created


@pytest.mark.asyncio
async def test_get_unknown_returns_none(plan_repo):
    assert await plan_repo.get(uuid4()) is None


@pytest.mark.asyncio
async def test_list_filters_by_status_and_client(plan_repo, make_plan_create):
    client_id = uuid4()
    first = await plan_repo.create(make_plan_create(client_id=client_id))
    second = await plan_repo.create(make_plan_create())
    await plan_repo.transition_status(second.id, {PlanStatus.ACTIVE}, PlanStatus.PAUSED)

    active = await plan_repo.list(status=PlanStatus.ACTIVE)
    assert [p.id for p in active] == [first.id]

    by_client = await plan_repo.list(client_id=client_id)
    assert [p.id for p in by_client] == [first.id]

    assert len(await plan_repo.list()) == 2


@pytest.mark.asyncio
async def test_update_replaces_rule_and_line_items(plan_repo, make_plan_create):
    created = await plan_repo.create(
        make_plan_create(ends_at=datetime(2025, 12, 31, tzinfo=UTC))
    )
    updated = await plan_repo.update(
        created.id,
        RecurringPlanUpdate(
            name="Bi-monthly HVAC",
            ends_at=None,
            rule=RecurringRule(frequency=Frequency.MONTHLY, interval=2, by_month_day=10),
            line_items=[LineItemTemplate(name="Inspection", quantity=1, unit_price=99)],
        ),
    )

    assert updated.name == "Bi-monthly HVAC"
    assert updated.ends_at is None
    assert updated.rule.frequency == Frequency.MONTHLY
    assert updated.rule.by_month_day == 10
    assert [item.name for item in updated.line_items] == ["Inspection"]
    # Untouched fields survive
    assert updated.address == created.address


@pytest.mark.asyncio
async def test_update_unknown_plan(plan_repo):
    with pytest.raises(NotFoundError):
        await plan_repo.update(uuid4(), RecurringPlanUpdate(name="x"))


@pytest.mark.asyncio
async def test_transition_is_compare_and_set(plan_repo, make_plan_create):
    created = await plan_repo.create(make_plan_create())
    plan, cascaded = await plan_repo.transition_status(
        created.id, {PlanStatus.ACTIVE}, PlanStatus.PAUSED
    )
    assert plan.status == PlanStatus.PAUSED
    assert cascaded == 0

    with pytest.raises(InvalidStateError) as exc_info:
        await plan_repo.transition_status(created.id, {PlanStatus.ACTIVE}, PlanStatus.PAUSED)
    assert exc_info.value.current_state == "Paused"
