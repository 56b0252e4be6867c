import pytest

from app.services.booking_service import BookingService
from app.services.memory_store import MemoryStore


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def service(store):
    return BookingService(store=store, table="appointments")


@pytest.fixture
def booking_request():
    """Builds booking payloads; override any field by keyword."""
    def _make(**overrides):
        payload = {
            "provider_id": "doc-1",
            "requester_id": "pat-1",
            "day": "2024-05-06",
            "time_slot_label": "08:00 AM - 08:15 AM",
            "metadata": {"reason": "Follow-up", "type": "online", "urgency": "normal"},
        }
        payload.update(overrides)
        return payload
    return _make
