import pytest

from salon_api.services.calendar_fanout import CalendarFanOut
from salon_api.services.calendar_reconciliation import (
    FindingType,
    ReconciliationEngine,
    ReconciliationUnavailable,
)
from salon_api.services.calendar_repair import RepairExecutor
from salon_api.services.google_calendar_service import BookingEventFields

PRIMARY = "primary@salon.test"


async def publish(gateway, booking, calendar_id=PRIMARY) -> str:
    result = await gateway.create_event(calendar_id, BookingEventFields.from_booking(booking))
    return result.reference


async def test_counts_in_calendar_missing_id_and_missing_event(db, gateway, primary_target, make_booking):
    in_cal = make_booking("2030-06-12", "10:00")
    ref = await publish(gateway, in_cal)
    in_cal.google_event_ids = [ref]
    db.commit()

    make_booking("2030-06-12", "11:00")  # never published
    make_booking("2030-06-13", "09:00", references=["vanished"])
    make_booking("2030-06-13", "12:00", status="cancelled")  # ignored

    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-13")
    summary = report.to_summary()

    assert summary["totalBookings"] == 3
    assert summary["inCalendar"] == 1
    assert summary["missingEventIds"] == 1
    assert summary["missingInCalendar"] == 1
    assert summary["orphanedEvents"] == 0
    assert summary["calendarId"] == PRIMARY
    assert {d["action"] for d in summary["details"]} == {"create_event", "recreate_event"}


async def test_manually_deleted_event_gives_one_missing_in_calendar(db, gateway, primary_target, make_booking):
    bookings = [make_booking("2030-06-12", t) for t in ("10:00", "10:30", "11:00")]
    for booking in bookings:
        booking.google_event_ids = [await publish(gateway, booking)]
    db.commit()

    gateway.remove_event(bookings[1].google_event_ids[0])
    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")

    missing = report.of_type(FindingType.MISSING_IN_CALENDAR)
    assert len(missing) == 1
    assert missing[0].booking_id == bookings[1].id
    assert len(report.of_type(FindingType.IN_CALENDAR)) == 2


async def test_any_matching_reference_counts_as_in_calendar(db, gateway, primary_target, make_booking):
    booking = make_booking("2030-06-12", "10:00")
    primary_ref = await publish(gateway, booking)
    booking.google_event_ids = ["secondary-only-ref", primary_ref]
    db.commit()

    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")

    assert report.findings[0].type == FindingType.IN_CALENDAR


async def test_unreferenced_booking_event_is_orphaned(db, gateway, primary_target, make_booking):
    gateway.add_foreign_event(PRIMARY, "Turno con Fantasma", "2030-06-12", event_id="ghost")
    gateway.add_foreign_event(PRIMARY, "Reunión de equipo", "2030-06-12")

    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")

    assert [f.event_id for f in report.orphaned] == ["ghost"]
    assert report.orphaned[0].to_dict()["action"] == "review_manually"
    assert report.total_bookings == 0


async def test_only_primary_calendar_is_listed(db, gateway, primary_target, add_target, make_booking):
    add_target("secondary@salon.test")
    booking = make_booking("2030-06-12", "10:00")
    booking.google_event_ids = [await publish(gateway, booking, "secondary@salon.test")]
    db.commit()

    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")

    assert report.findings[0].type == FindingType.MISSING_IN_CALENDAR
    assert all(call[1] == PRIMARY for call in gateway.calls if call[0] == "list")


async def test_listing_failure_raises_unavailable(db, gateway, primary_target, make_booking):
    make_booking("2030-06-12", "10:00")
    gateway.list_failing = True

    with pytest.raises(ReconciliationUnavailable):
        await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")


async def test_no_active_calendar_raises_unavailable(db, gateway):
    with pytest.raises(ReconciliationUnavailable):
        await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")


async def test_reconcile_never_writes(db, gateway, primary_target, make_booking):
    booking = make_booking("2030-06-12", "10:00", references=["vanished"])

    await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")

    db.expire_all()
    assert booking.google_event_ids == ["vanished"]
    assert [c[0] for c in gateway.calls] == ["list"]


async def test_repair_then_reconcile_is_clean(db, gateway, primary_target, make_booking):
    make_booking("2030-06-12", "10:00")
    make_booking("2030-06-12", "11:00", references=["vanished"])

    engine = ReconciliationEngine(db, gateway)
    report = await engine.reconcile("2030-06-12", "2030-06-12")
    repair = await RepairExecutor(db, CalendarFanOut(gateway)).repair(report.repairable)

    assert repair.succeeded == 2
    db.expire_all()
    after = await engine.reconcile("2030-06-12", "2030-06-12")
    assert {f.type for f in after.findings} == {FindingType.IN_CALENDAR}
