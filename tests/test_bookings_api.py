from conftest import days_ahead

from salon_api.models import Booking

PRIMARY = "primary@salon.test"


def booking_payload(day=None, time="10:00", name="Ana Pérez", phone="+54 9 11 2345-6789", **extra):
    return {"name": name, "phone": phone, "date": day or days_ahead(3), "time": time, **extra}


def test_public_booking_is_published_to_primary(client, gateway, primary_target):
    response = client.post("/bookings", json=booking_payload(service="Corte"))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Booking created"
    data = body["data"]
    assert data["status"] == "confirmed"
    assert data["source"] == "public"
    assert data["client"]["phone"] == "+5491123456789"
    assert data["calendarWarnings"] == []
    assert len(data["googleEventIds"]) == 1
    assert data["googleEventId"] == data["googleEventIds"][0]
    event = gateway.events[PRIMARY][data["googleEventId"]]
    assert event.summary == "Turno con Ana Pérez"
    assert data["notificationStatus"] == "skipped"


def test_double_booking_is_rejected(client, primary_target):
    payload = booking_payload()
    assert client.post("/bookings", json=payload).status_code == 201

    response = client.post("/bookings", json=booking_payload(name="Otra Persona", phone="+5491199998888"))

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "slot_conflict"
    assert body["details"]["time"] == "10:00"


def test_past_date_is_rejected(client, primary_target, gateway):
    response = client.post("/bookings", json=booking_payload(day=days_ahead(-1)))

    assert response.status_code == 400
    assert response.json()["code"] == "past_date"
    assert gateway.calls == []


def test_date_beyond_advance_window_is_rejected(client, primary_target):
    response = client.post("/bookings", json=booking_payload(day=days_ahead(31)))

    assert response.status_code == 400
    assert response.json()["code"] == "out_of_range"


def test_invalid_phone_is_a_validation_error(client):
    response = client.post("/bookings", json=booking_payload(phone="12345"))

    assert response.status_code == 422
    assert response.json()["error"] == "Invalid request data"


def test_calendar_failure_surfaces_as_warning(client, gateway, primary_target, add_target):
    add_target("broken@salon.test")
    gateway.failing.add("broken@salon.test")

    response = client.post("/bookings", json=booking_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Booking created, but calendar sync had problems"
    assert len(body["data"]["googleEventIds"]) == 1
    assert "broken@salon.test" in body["data"]["calendarWarnings"][0]


def test_booking_without_calendars_is_still_saved(client, db):
    response = client.post("/bookings", json=booking_payload())

    assert response.status_code == 201
    assert response.json()["data"]["googleEventIds"] == []
    assert "No active calendar" in response.json()["data"]["calendarWarnings"][0]
    assert db.query(Booking).count() == 1


def test_admin_booking_is_marked_admin(client, auth_headers, primary_target):
    response = client.post("/bookings", json=booking_payload(), headers=auth_headers)

    assert response.json()["data"]["source"] == "admin"


def test_reads_require_authentication(client):
    assert client.get("/bookings").status_code == 401
    assert client.get("/bookings/1").status_code == 401


def test_list_and_get_bookings(client, auth_headers, primary_target):
    first = client.post("/bookings", json=booking_payload(time="10:00")).json()["data"]
    client.post("/bookings", json=booking_payload(time="11:00", name="Beto Gómez", phone="+5491155554444"))

    listing = client.get("/bookings", params={"date": first["date"]}, headers=auth_headers).json()
    assert listing["count"] == 2

    detail = client.get(f"/bookings/{first['id']}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["client"]["name"] == "Ana Pérez"

    assert client.get("/bookings/9999", headers=auth_headers).status_code == 404


def test_cancel_removes_calendar_events(client, gateway, auth_headers, primary_target, add_target):
    add_target("secondary@salon.test")
    created = client.post("/bookings", json=booking_payload()).json()["data"]
    assert len(gateway.all_references()) == 2

    response = client.put(f"/bookings/{created['id']}", json={"status": "cancelled"}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "cancelled"
    assert data["googleEventIds"] == []
    assert gateway.all_references() == set()


def test_cancelled_slot_can_be_rebooked_by_someone_else(client, auth_headers, primary_target):
    created = client.post("/bookings", json=booking_payload()).json()["data"]
    client.put(f"/bookings/{created['id']}", json={"status": "cancelled"}, headers=auth_headers)

    response = client.post("/bookings", json=booking_payload(name="Carla Díaz", phone="+5491177776666"))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["id"] == created["id"]
    assert data["status"] == "confirmed"
    assert data["client"]["name"] == "Carla Díaz"
    assert len(data["googleEventIds"]) == 1


def test_reschedule_updates_existing_event(client, gateway, auth_headers, primary_target):
    created = client.post("/bookings", json=booking_payload()).json()["data"]
    new_day = days_ahead(5)

    response = client.put(
        f"/bookings/{created['id']}", json={"date": new_day, "time": "16:30"}, headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert (data["date"], data["time"]) == (new_day, "16:30")
    assert data["googleEventIds"] == created["googleEventIds"]
    event = gateway.events[PRIMARY][created["googleEventId"]]
    assert event.start.startswith(f"{new_day}T16:30")


def test_reschedule_with_every_calendar_inactive_keeps_events(client, gateway, auth_headers, primary_target, db):
    created = client.post("/bookings", json=booking_payload()).json()["data"]
    primary_target.is_active = False
    db.commit()

    response = client.put(f"/bookings/{created['id']}", json={"time": "17:00"}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["googleEventIds"] == created["googleEventIds"]
    assert data["calendarWarnings"]
    assert created["googleEventId"] in gateway.events[PRIMARY]


def test_reschedule_onto_taken_slot_conflicts(client, auth_headers, primary_target):
    first = client.post("/bookings", json=booking_payload(time="10:00")).json()["data"]
    client.post("/bookings", json=booking_payload(time="11:00", name="Beto Gómez", phone="+5491155554444"))

    response = client.put(f"/bookings/{first['id']}", json={"time": "11:00"}, headers=auth_headers)

    assert response.status_code == 409


def test_delete_removes_row_and_events(client, gateway, auth_headers, primary_target, db):
    created = client.post("/bookings", json=booking_payload()).json()["data"]

    response = client.delete(f"/bookings/{created['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["calendarWarnings"] == []
    assert gateway.all_references() == set()
    assert db.query(Booking).count() == 0
    assert client.get(f"/bookings/{created['id']}", headers=auth_headers).status_code == 404


def test_admin_changes_are_logged(client, auth_headers, primary_target):
    created = client.post("/bookings", json=booking_payload()).json()["data"]
    client.put(f"/bookings/{created['id']}", json={"status": "completed"}, headers=auth_headers)

    logs = client.get("/activity", params={"entityType": "booking"}, headers=auth_headers).json()

    assert logs["pagination"]["total"] == 1
    assert logs["data"][0]["adminUsername"] == "admin"
