from salon_api.domain.bookings.repository import SlotLedger
from salon_api.services.calendar_fanout import CalendarFanOut
from salon_api.services.calendar_reconciliation import ReconciliationEngine
from salon_api.services.calendar_repair import RepairExecutor


async def test_batch_with_one_failure_reports_5_4_1(db, gateway, primary_target, make_booking, make_client):
    for index, time in enumerate(("09:00", "09:30", "10:00", "10:30")):
        make_booking("2030-06-12", time, client=make_client(f"Cliente {index}", f"+549110000000{index}"))
    unlucky = make_booking("2030-06-12", "11:00", client=make_client("Sin Suerte", "+5491100000009"))
    gateway.failing_clients.add("Sin Suerte")

    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")
    assert len(report.repairable) == 5

    repair = await RepairExecutor(db, CalendarFanOut(gateway)).repair(report.repairable)

    assert (repair.attempted, repair.succeeded, repair.failed) == (5, 4, 1)
    assert len(repair.errors) == 1
    assert "Sin Suerte" in repair.errors[0]
    db.expire_all()
    assert SlotLedger(db).get(unlucky.id).google_event_ids == []


async def test_repair_writes_references_for_every_target(db, gateway, primary_target, add_target, make_booking):
    add_target("secondary@salon.test")
    booking = make_booking("2030-06-12", "10:00")

    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")
    repair = await RepairExecutor(db, CalendarFanOut(gateway)).repair(report.repairable)

    assert repair.succeeded == 1
    db.expire_all()
    references = SlotLedger(db).get(booking.id).google_event_ids
    assert len(references) == 2
    assert references[0] in gateway.events["primary@salon.test"]


async def test_missing_in_calendar_clears_stale_events_first(db, gateway, primary_target, add_target, make_booking):
    add_target("secondary@salon.test")
    booking = make_booking("2030-06-12", "10:00")
    leftover = gateway.add_foreign_event("secondary@salon.test", "Turno con Ana", "2030-06-12")
    booking.google_event_ids = ["gone-from-primary", leftover]
    db.commit()

    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")
    await RepairExecutor(db, CalendarFanOut(gateway)).repair(report.repairable)

    assert leftover not in gateway.events["secondary@salon.test"]


async def test_booking_cancelled_since_finding_is_skipped(db, gateway, primary_target, make_booking):
    booking = make_booking("2030-06-12", "10:00")
    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")
    SlotLedger(db).cancel(booking.id)

    repair = await RepairExecutor(db, CalendarFanOut(gateway)).repair(report.repairable)

    assert repair.skipped == 1
    assert repair.attempted == 0
    assert not any(call[0] == "create" for call in gateway.calls)


async def test_repair_without_targets_fails_softly(db, gateway, primary_target, make_booking):
    make_booking("2030-06-12", "10:00")
    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")
    primary_target.is_active = False
    db.commit()

    repair = await RepairExecutor(db, CalendarFanOut(gateway)).repair(report.repairable)

    assert (repair.attempted, repair.failed) == (1, 1)
    assert "no active calendar" in repair.errors[0]


async def test_repair_report_dict_shape(db, gateway, primary_target, make_booking):
    make_booking("2030-06-12", "10:00")
    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")
    repair = await RepairExecutor(db, CalendarFanOut(gateway)).repair(report.repairable)

    data = repair.to_dict()
    assert data["created"] == data["succeeded"] == 1
    assert data["repaired"][0]["googleEventIds"]


async def test_unreadable_booking_does_not_stop_the_batch(db, gateway, primary_target, make_booking):
    broken = make_booking("2030-06-12", "09:00")
    healthy = make_booking("2030-06-12", "10:00")
    report = await ReconciliationEngine(db, gateway).reconcile("2030-06-12", "2030-06-12")
    findings = report.repairable
    for finding in findings:
        if finding.booking_id == broken.id:
            finding.client_name = None
    broken.client_id = 9999
    db.commit()
    db.expire_all()

    repair = await RepairExecutor(db, CalendarFanOut(gateway)).repair(findings)

    assert (repair.attempted, repair.succeeded, repair.failed) == (2, 1, 1)
    assert repair.errors[0].startswith(f"Booking {broken.id}")
    assert repair.repaired[0]["bookingId"] == healthy.id
