import pytest
from conftest import FakeCalendarGateway

from salon_api.domain.calendars.schemas import CalendarTarget
from salon_api.services.calendar_fanout import CalendarFanOut
from salon_api.services.google_calendar_service import BookingEventFields

FIELDS = BookingEventFields(client_name="Ana", client_phone="+5491123456789", date="2030-06-12", time="10:00")

TARGETS = [
    CalendarTarget(id=1, name="Principal", calendar_id="cal-a", is_primary=True),
    CalendarTarget(id=2, name="Estilista", calendar_id="cal-b"),
    CalendarTarget(id=3, name="Recepción", calendar_id="cal-c"),
]


@pytest.fixture
def gateway():
    return FakeCalendarGateway()


@pytest.fixture
def fanout(gateway):
    return CalendarFanOut(gateway)


async def test_create_with_one_failing_target(gateway, fanout):
    gateway.failing.add("cal-b")

    result = await fanout.create(FIELDS, TARGETS)

    assert result.success
    assert len(result.references) == 2
    assert result.references[0] in gateway.events["cal-a"]
    assert result.references[1] in gateway.events["cal-c"]
    assert [o.success for o in result.outcomes] == [True, False, True]
    assert len(result.warnings) == 1
    assert "cal-b" in result.warnings[0]


async def test_create_all_failing_is_unsuccessful(gateway, fanout):
    gateway.failing.update({"cal-a", "cal-b", "cal-c"})

    result = await fanout.create(FIELDS, TARGETS)

    assert not result.success
    assert result.references == []
    assert len(result.failures) == 3


async def test_create_without_targets(fanout):
    result = await fanout.create(FIELDS, [])
    assert not result.success
    assert result.outcomes == []


async def test_create_keeps_target_order(fanout):
    result = await fanout.create(FIELDS, TARGETS)
    assert result.primary_reference == result.references[0]
    assert len(result.references) == 3


async def test_empty_delete_is_success(gateway, fanout):
    result = await fanout.delete([], TARGETS)

    assert result.success
    assert gateway.calls == []


async def test_delete_tries_every_target(gateway, fanout):
    created = await fanout.create(FIELDS, TARGETS)

    result = await fanout.delete(created.references, TARGETS)

    assert result.success
    assert gateway.all_references() == set()
    # each reference is offered to all three calendars
    assert len(result.outcomes) == 9
    assert sum(1 for o in result.outcomes if o.already_absent) == 6


async def test_delete_fails_only_when_nothing_acknowledges(gateway, fanout):
    gateway.failing.update({"cal-a", "cal-b", "cal-c"})
    result = await fanout.delete(["evt-x"], TARGETS)
    assert not result.success


async def test_update_keeps_existing_references(gateway, fanout):
    created = await fanout.create(FIELDS, TARGETS)
    moved = FIELDS.model_copy(update={"time": "15:00"})

    result = await fanout.update(created.references, moved, TARGETS)

    assert result.success
    assert result.references == created.references
    assert all(event.start.startswith("2030-06-12T15:00") for cal in gateway.events.values() for event in cal.values())


async def test_update_drops_reference_missing_everywhere(gateway, fanout):
    created = await fanout.create(FIELDS, TARGETS[:2])
    gateway.remove_event(created.references[1])

    result = await fanout.update(created.references, FIELDS, TARGETS[:2])

    assert result.success
    assert result.references == [created.references[0]]


async def test_update_keeps_reference_after_transient_failure(gateway, fanout):
    created = await fanout.create(FIELDS, TARGETS[:1])
    gateway.failing.add("cal-a")

    result = await fanout.update(created.references, FIELDS, TARGETS[:1])

    assert not result.success
    assert result.references == created.references


async def test_update_finds_reference_after_target_reorder(gateway, fanout):
    created = await fanout.create(FIELDS, TARGETS[:2])
    reordered = [TARGETS[1], TARGETS[0]]

    result = await fanout.update(created.references, FIELDS, reordered)

    assert result.success
    assert result.references == created.references


async def test_update_without_references_is_noop(gateway, fanout):
    result = await fanout.update([], FIELDS, TARGETS)
    assert result.success
    assert gateway.calls == []


async def test_update_without_targets_keeps_references(gateway, fanout):
    created = await fanout.create(FIELDS, TARGETS[:2])
    calls_before = len(gateway.calls)

    result = await fanout.update(created.references, FIELDS, [])

    assert result.references == created.references
    assert len(gateway.calls) == calls_before
