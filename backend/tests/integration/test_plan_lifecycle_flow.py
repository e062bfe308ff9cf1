"""
Integration tests for PlanLifecycleController against SQLite.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from dispatch.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from dispatch.models.enums import Frequency, OccurrenceStatus, PlanStatus
from dispatch.models.recurring_plan import RecurringPlanUpdate, RecurringRule
from dispatch.services.activity_logger import ActivityRecorder
from dispatch.services.occurrence_generator import OccurrenceGenerator
from dispatch.services.plan_lifecycle import PlanLifecycleController

UTC = timezone.utc


@pytest.fixture
def controller(plan_repo, occurrence_repo, clock, activity_repo):
    activity = ActivityRecorder(activity_repo)
    generator = OccurrenceGenerator(
        plan_repo=plan_repo, occurrence_repo=occurrence_repo, clock=clock, activity=activity
    )
    return PlanLifecycleController(plan_repo=plan_repo, generator=generator, clock=clock, activity=activity)


@pytest.mark.asyncio
async def test_create_generates_first_window(controller, occurrence_repo, make_plan_create):
    plan, generation = await controller.create_plan(make_plan_create(generation_window_days=10))

    assert plan.status == PlanStatus.ACTIVE
    assert generation.created_count == 11
    assert plan.last_generated_through == date(2025, 3, 11)
    assert len(await occurrence_repo.list_by_plan(plan.id)) == 11


@pytest.mark.asyncio
async def test_create_rejects_unknown_timezone(controller, plan_repo, make_plan_create):
    with pytest.raises(ValidationError) as exc_info:
        await controller.create_plan(make_plan_create(timezone="Atlantis/Lost"))

    assert exc_info.value.field == "timezone"
    assert await plan_repo.list() == []


@pytest.mark.asyncio
async def test_cancel_cascades_planned_only(controller, occurrence_repo, clock, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=6))
    occurrences = await occurrence_repo.list_by_plan(plan.id)
    assert len(occurrences) == 7
    generated_ids = {occurrences[0].id, occurrences[1].id}
    for occurrence_id in generated_ids:
        await occurrence_repo.mark_generated(occurrence_id, uuid4(), clock.now())

    cancelled = await controller.cancel(plan.id)

    assert cancelled.status == PlanStatus.CANCELLED
    after = await occurrence_repo.list_by_plan(plan.id)
    statuses = {o.id: o.status for o in after}
    assert sum(1 for s in statuses.values() if s == OccurrenceStatus.CANCELLED) == 5
    assert all(statuses[i] == OccurrenceStatus.GENERATED for i in generated_ids)
    for occurrence in after:
        if occurrence.status == OccurrenceStatus.CANCELLED:
            assert occurrence.skip_reason == "Plan cancelled"
            assert occurrence.cancelled_at == clock.now()


@pytest.mark.asyncio
async def test_complete_cascades_with_reason(controller, occurrence_repo, clock, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=2))
    clock.advance(hours=-1)

    completed = await controller.complete(plan.id)

    assert completed.status == PlanStatus.COMPLETED
    after = await occurrence_repo.list_by_plan(plan.id)
    assert {o.status for o in after} == {OccurrenceStatus.CANCELLED}
    assert {o.skip_reason for o in after} == {"Plan completed"}


@pytest.mark.asyncio
async def test_cancel_keeps_past_planned_occurrences(controller, occurrence_repo, clock, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=6))
    clock.advance(days=3)

    await controller.cancel(plan.id)

    after = await occurrence_repo.list_by_plan(plan.id)
    by_date = {o.occurrence_date: o.status for o in after}
    # Mar 4 starts exactly at "now" and is no longer in the future
    assert [by_date[date(2025, 3, d)] for d in (1, 2, 3, 4)] == [OccurrenceStatus.PLANNED] * 4
    assert [by_date[date(2025, 3, d)] for d in (5, 6, 7)] == [OccurrenceStatus.CANCELLED] * 3
    for occurrence in after:
        if occurrence.status == OccurrenceStatus.PLANNED:
            assert occurrence.skip_reason is None
            assert occurrence.cancelled_at is None


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["cancel", "complete"])
async def test_terminal_states_reject_transitions(controller, make_plan_create, terminal):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=2))
    await getattr(controller, terminal)(plan.id)

    for action in ("pause", "resume", "cancel", "complete"):
        with pytest.raises(InvalidStateError):
            await getattr(controller, action)(plan.id)
    with pytest.raises(InvalidStateError):
        await controller.generate_occurrences(plan.id, 30)
    with pytest.raises(InvalidStateError):
        await controller.update_plan(plan.id, RecurringPlanUpdate(name="Revived"))


@pytest.mark.asyncio
async def test_pause_and_resume(controller, occurrence_repo, clock, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=5))
    before = await occurrence_repo.list_by_plan(plan.id)

    paused = await controller.pause(plan.id)
    assert paused.status == PlanStatus.PAUSED
    assert await occurrence_repo.list_by_plan(plan.id) == before
    with pytest.raises(InvalidStateError):
        await controller.generate_occurrences(plan.id, 10)
    with pytest.raises(InvalidStateError):
        await controller.pause(plan.id)

    resumed = await controller.resume(plan.id)
    assert resumed.status == PlanStatus.ACTIVE

    clock.advance(days=1)
    result = await controller.generate_occurrences(plan.id, 10)
    assert result.window_start == date(2025, 3, 7)
    assert result.created_count == 1


@pytest.mark.asyncio
async def test_paused_plan_can_be_cancelled(controller, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=2))
    await controller.pause(plan.id)

    cancelled = await controller.cancel(plan.id)
    assert cancelled.status == PlanStatus.CANCELLED


@pytest.mark.asyncio
async def test_transition_unknown_plan(controller):
    with pytest.raises(NotFoundError):
        await controller.pause(uuid4())


@pytest.mark.asyncio
async def test_transitions_are_logged(controller, activity_repo, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=2))
    await controller.pause(plan.id)
    await controller.cancel(plan.id)

    entries = await activity_repo.list_for_entity("recurring_plan", str(plan.id))
    event_types = {e.event_type for e in entries}
    assert {"plan_created", "occurrences_generated", "plan_paused", "plan_cancelled"} <= event_types
    cancel_entry = next(e for e in entries if e.event_type == "plan_cancelled")
    assert cancel_entry.changes == {"from": "Paused", "to": "Cancelled", "cancelled_occurrences": 2}


@pytest.mark.asyncio
async def test_rule_update_does_not_touch_existing(controller, occurrence_repo, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=5))
    before = await occurrence_repo.list_by_plan(plan.id)

    updated = await controller.update_plan(
        plan.id,
        RecurringPlanUpdate(rule=RecurringRule(frequency=Frequency.MONTHLY, by_month_day=20)),
    )

    assert updated.rule.frequency == Frequency.MONTHLY
    assert await occurrence_repo.list_by_plan(plan.id) == before


@pytest.mark.asyncio
async def test_update_checks_end_against_stored_start(controller, make_plan_create):
    plan, _ = await controller.create_plan(make_plan_create(generation_window_days=2))

    with pytest.raises(ValidationError) as exc_info:
        await controller.update_plan(
            plan.id, RecurringPlanUpdate(ends_at=datetime(2025, 2, 1, tzinfo=UTC))
        )
    assert exc_info.value.field == "ends_at"
