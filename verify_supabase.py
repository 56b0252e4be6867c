"""
Live smoke check against the configured Supabase project.

Needs SUPABASE_URL / SUPABASE_KEY and the table from supabase/schema.sql.
Books a slot a year ahead, double-books it, then cancels it.
"""
import asyncio
import random
from datetime import date, timedelta

from app.core.exceptions import ConflictError
from app.core.logger import setup_logging
from app.services.booking_service import BookingService
from app.services.db_service import db_service
from app.services.slot_service import period_slots

GREEN = '\033[92m'
RED = '\033[91m'
RESET = '\033[0m'
CYAN = '\033[96m'


async def run_check():
    print(f"\n{CYAN}🚀 STARTING SUPABASE BOOKING CHECK{RESET}")

    service = BookingService(store=db_service)
    provider_id = f"smoke-doc-{random.randint(1000, 9999)}"
    day = date.today() + timedelta(days=365)
    label = random.choice(period_slots("evening"))

    booking = await service.book_slot({
        "provider_id": provider_id,
        "requester_id": "smoke-patient-1",
        "day": day,
        "time_slot_label": label,
        "metadata": {"reason": "smoke test"},
    })
    print(f"{GREEN}✅ Booked {booking.id}: {day} {label}{RESET}")

    assert label in await service.get_booked_slots(provider_id, day), "Booked slot not reported"

    try:
        await service.book_slot({
            "provider_id": provider_id,
            "requester_id": "smoke-patient-2",
            "day": day,
            "time_slot_label": label,
        })
        print(f"{RED}❌ Double booking was accepted!{RESET}")
    except ConflictError:
        print(f"{GREEN}✅ Double booking rejected{RESET}")

    await service.cancel_booking(booking.id)
    assert label not in await service.get_booked_slots(provider_id, day), "Cancelled slot still booked"
    print(f"{GREEN}✅ Cancelled and slot released{RESET}")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(run_check())
