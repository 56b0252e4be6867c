from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter

from app.models.booking_models import Booking, BookingRequest, StatusUpdate
from app.services.booking_service import BookingService
from app.services.slot_service import PERIODS, period_slots

router = APIRouter()
booking_service = BookingService()

Period = Literal["morning", "evening", "night"]


@router.get("/slots")
async def list_slots(period: Optional[Period] = None):
    if period:
        return {"period": period, "slots": period_slots(period)}
    return {"periods": {name: period_slots(name) for name in PERIODS}}


@router.get("/providers/{provider_id}/slots")
async def provider_slots(provider_id: str, day: date, period: Period = "morning"):
    available = await booking_service.get_available_slots(provider_id, day, period)
    return {
        "provider_id": provider_id,
        "day": day.isoformat(),
        "period": period,
        "available": available,
    }


@router.get("/providers/{provider_id}/bookings", response_model=list[Booking])
async def provider_bookings(provider_id: str, day: Optional[date] = None):
    return await booking_service.list_provider_bookings(provider_id, day)


@router.get("/requesters/{requester_id}/bookings", response_model=list[Booking])
async def requester_bookings(requester_id: str):
    return await booking_service.list_requester_bookings(requester_id)


@router.post("/bookings", response_model=Booking, status_code=201)
async def book_slot(req: BookingRequest):
    # ConflictError / PersistenceError are mapped to 409 / 503 in app.main
    return await booking_service.book_slot(req)


@router.get("/bookings/{booking_id}", response_model=Booking)
async def get_booking(booking_id: str):
    return await booking_service.get_booking(booking_id)


@router.patch("/bookings/{booking_id}/status", response_model=Booking)
async def update_status(booking_id: str, req: StatusUpdate):
    return await booking_service.update_status(booking_id, req.status, req.notes)


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(booking_id: str):
    await booking_service.cancel_booking(booking_id)
    return {"success": True, "message": f"Booking {booking_id} was cancelled."}
