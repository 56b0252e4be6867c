import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch

from app.api import bookings
from app.core.exceptions import PersistenceError
from app.main import app
from app.services.booking_service import BookingService
from app.services.memory_store import MemoryStore

client = TestClient(app)

DAY = "2024-05-06"


@pytest.fixture(autouse=True)
def fresh_service():
    # Each test gets its own empty in-memory store
    service = BookingService(store=MemoryStore())
    with patch.object(bookings, "booking_service", service):
        yield service


def _book(**overrides):
    payload = {
        "provider_id": "doc-1",
        "requester_id": "pat-1",
        "day": DAY,
        "time_slot_label": "08:00 AM - 08:15 AM",
        "metadata": {"reason": "Fever", "type": "online"},
    }
    payload.update(overrides)
    return client.post("/bookings", json=payload)


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_list_slots():
    morning = client.get("/slots", params={"period": "morning"}).json()
    assert len(morning["slots"]) == 16
    assert morning["slots"][0] == "08:00 AM - 08:15 AM"

    everything = client.get("/slots").json()["periods"]
    assert set(everything) == {"morning", "evening", "night"}
    assert len(everything["evening"]) == 24

    assert client.get("/slots", params={"period": "afternoon"}).status_code == 422


def test_book_slot_and_conflict():
    response = _book()
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["time_slot_label"] == "08:00 AM - 08:15 AM"
    assert data["id"]

    again = _book(requester_id="pat-2")
    assert again.status_code == 409
    assert "another slot" in again.json()["detail"]


def test_book_slot_validation():
    assert _book(time_slot_label="8 o'clock").status_code == 422
    assert _book(requester_id="").status_code == 422


def test_provider_slots_reflect_bookings():
    _book(time_slot_label="08:15 AM - 08:30 AM")

    data = client.get("/providers/doc-1/slots", params={"day": DAY, "period": "morning"}).json()

    assert len(data["available"]) == 15
    assert "08:15 AM - 08:30 AM" not in data["available"]

    other_day = client.get("/providers/doc-1/slots", params={"day": "2024-05-07"}).json()
    assert len(other_day["available"]) == 16


def test_update_status_and_cancel():
    booking_id = _book().json()["id"]

    response = client.patch(f"/bookings/{booking_id}/status", json={"status": "completed", "notes": "All good"})
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["notes"] == "All good"

    second_id = _book(time_slot_label="08:30 AM - 08:45 AM").json()["id"]
    response = client.post(f"/bookings/{second_id}/cancel")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get(f"/bookings/{second_id}").json()["status"] == "cancelled"

    available = client.get("/providers/doc-1/slots", params={"day": DAY}).json()["available"]
    assert len(available) == 16


def test_unknown_booking_returns_404():
    assert client.get("/bookings/nope").status_code == 404
    assert client.patch("/bookings/nope/status", json={"status": "cancelled"}).status_code == 404
    assert client.post("/bookings/nope/cancel").status_code == 404


def test_list_bookings():
    _book()
    _book(day="2024-05-07", requester_id="pat-2")

    provider = client.get("/providers/doc-1/bookings").json()
    assert [b["day"] for b in provider] == [DAY, "2024-05-07"]

    provider_day = client.get("/providers/doc-1/bookings", params={"day": "2024-05-07"}).json()
    assert len(provider_day) == 1

    patient = client.get("/requesters/pat-1/bookings").json()
    assert len(patient) == 1
    assert patient[0]["metadata"]["reason"] == "Fever"


def test_storage_failure_returns_503(fresh_service):
    with patch.object(fresh_service, "get_booked_slots", new_callable=AsyncMock) as mock_booked:
        mock_booked.side_effect = PersistenceError("timeout")

        response = client.get("/providers/doc-1/slots", params={"day": DAY})

    assert response.status_code == 503


def test_provider_slots_come_from_service(fresh_service):
    with patch.object(fresh_service, "get_available_slots", new_callable=AsyncMock) as mock_available:
        mock_available.return_value = ["06:00 PM - 06:15 PM"]

        data = client.get("/providers/doc-1/slots", params={"day": DAY, "period": "night"}).json()

    assert data["available"] == ["06:00 PM - 06:15 PM"]
    mock_available.assert_awaited_once()
    assert mock_available.await_args.args[2] == "night"
