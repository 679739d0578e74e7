from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from room_inventory.main import create_app


@pytest.fixture
def client(settings):
    app = create_app(replace(settings, create_tables_on_startup=True))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def room_type(client):
    response = client.post(
        "/api/v1/rooms",
        json={"name": "Deluxe Double", "price": "2000", "weekend_price": "2600", "max_sales_quantity": 1},
    )
    assert response.status_code == 201
    return response.json()


def _booking_payload(room_type_id, check_in="2026-03-01", check_out="2026-03-03"):
    return {
        "room_type_id": room_type_id,
        "guest_name": "Lin Mei",
        "guest_phone": "0912345678",
        "guest_email": "lin@example.com",
        "check_in": check_in,
        "check_out": check_out,
        "number_of_guests": 2,
        "total_price": "4000",
    }


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "service": "room-inventory"}


def test_booking_flow(client, room_type):
    created = client.post("/api/v1/bookings", json=_booking_payload(room_type["id"]))
    assert created.status_code == 201
    booking = created.json()
    assert booking["status"] == "pending"

    calendar = client.get(
        f"/api/v1/rooms/{room_type['id']}/availability", params={"start": "2026-03-01", "end": "2026-03-04"}
    ).json()
    assert [(n["date"], n["booked_quantity"], n["remaining_quantity"]) for n in calendar] == [
        ("2026-03-01", 1, 0),
        ("2026-03-02", 1, 0),
        ("2026-03-03", 0, 1),
    ]

    booking_id = booking["id"]
    assert client.post(f"/api/v1/bookings/{booking_id}/confirm").json()["status"] == "confirmed"
    response = client.post(f"/api/v1/bookings/{booking_id}/payment-method", json={"method": "bank_transfer"})
    assert response.json()["status"] == "pending_payment"

    response = client.post(f"/api/v1/bookings/{booking_id}/payment", json={"reference": "12ab5"})
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_payment_reference"

    response = client.post(f"/api/v1/bookings/{booking_id}/payment", json={"reference": "54321"})
    assert response.json()["status"] == "paid"
    assert response.json()["payment_reference"] == "54321"

    assert client.post(f"/api/v1/bookings/{booking_id}/complete").json()["status"] == "completed"

    response = client.post(f"/api/v1/bookings/{booking_id}/cancel")
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_status_transition"


def test_sold_out_night_is_conflict(client, room_type):
    assert client.post("/api/v1/bookings", json=_booking_payload(room_type["id"])).status_code == 201

    response = client.post(
        "/api/v1/bookings", json=_booking_payload(room_type["id"], check_in="2026-03-02", check_out="2026-03-05")
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "capacity_exceeded"
    assert body["context"]["dates"] == ["2026-03-02"]

    check = client.get(
        f"/api/v1/rooms/{room_type['id']}/check", params={"check_in": "2026-03-03", "check_out": "2026-03-05"}
    )
    assert check.json()["available"] is True


def test_blocked_night_is_conflict(client, room_type):
    response = client.put(
        f"/api/v1/rooms/{room_type['id']}/availability",
        json={"dates": ["2026-05-01"], "is_available": False, "reason": "Private event"},
    )
    assert response.status_code == 200
    assert response.json()[0]["is_available"] is False

    response = client.post(
        "/api/v1/bookings", json=_booking_payload(room_type["id"], check_in="2026-04-30", check_out="2026-05-02")
    )
    assert response.status_code == 409
    assert response.json()["error"] == "room_unavailable"


def test_cancel_then_delete(client, room_type):
    booking_id = client.post("/api/v1/bookings", json=_booking_payload(room_type["id"])).json()["id"]

    assert client.post(f"/api/v1/bookings/{booking_id}/cancel").json()["status"] == "cancelled"
    assert client.delete(f"/api/v1/bookings/{booking_id}").status_code == 204
    assert client.get(f"/api/v1/bookings/{booking_id}").status_code == 404

    calendar = client.get(
        f"/api/v1/rooms/{room_type['id']}/availability", params={"start": "2026-03-01", "end": "2026-03-03"}
    ).json()
    assert [n["booked_quantity"] for n in calendar] == [0, 0]


def test_invalid_ranges(client, room_type):
    payload = _booking_payload(room_type["id"], check_in="2026-03-03", check_out="2026-03-03")
    assert client.post("/api/v1/bookings", json=payload).status_code == 422

    response = client.get(
        f"/api/v1/rooms/{room_type['id']}/check", params={"check_in": "2026-03-03", "check_out": "2026-03-01"}
    )
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_date_range"


def test_unknown_room_type(client):
    response = client.post("/api/v1/bookings", json=_booking_payload(404))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_quote_and_overrides(client, room_type):
    room_type_id = room_type["id"]
    response = client.put(
        f"/api/v1/rooms/{room_type_id}/availability/2026-03-05/price", json={"weekday_price": "1800"}
    )
    assert response.status_code == 200

    response = client.put(
        f"/api/v1/rooms/{room_type_id}/availability/2026-03-05/max-sales-quantity", json={"max_sales_quantity": 0}
    )
    assert response.json()["remaining_quantity"] == 0

    quote = client.get(
        f"/api/v1/rooms/{room_type_id}/quote", params={"check_in": "2026-03-05", "check_out": "2026-03-07"}
    ).json()
    assert [n["is_weekend"] for n in quote["nights"]] == [False, True]
    assert float(quote["total"]) == 4400


def test_reconciliation_endpoints(client, room_type):
    client.post("/api/v1/bookings", json=_booking_payload(room_type["id"]))
    response = client.get(
        f"/api/v1/rooms/{room_type['id']}/reconciliation", params={"start": "2026-03-01", "end": "2026-03-05"}
    )
    assert response.status_code == 200
    assert response.json() == []


def test_websocket_receives_events(client, room_type):
    with client.websocket_connect("/ws") as websocket:
        assert websocket.receive_json()["type"] == "connected"

        websocket.send_text("not json")
        websocket.send_json({"type": "subscribe", "channel": "availability"})
        assert websocket.receive_json()["type"] == "subscribed"

        client.post("/api/v1/bookings", json=_booking_payload(room_type["id"], "2026-06-01", "2026-06-02"))
        created = websocket.receive_json()
        assert created["type"] == "booking_created"
        assert created["room_type_id"] == room_type["id"]
        changed = websocket.receive_json()
        assert changed["type"] == "room_availability_changed"
        assert changed["date"] == "2026-06-01"
