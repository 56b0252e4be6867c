from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, PersistenceError
from app.core.logger import logger
from app.models.booking_models import Booking, BookingRequest, BookingStatus, to_calendar_day
from app.services.slot_service import period_slots, slot_sort_key
from app.services.store import DocumentStore, Filter, Transaction, get_store


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BookingService:
    """
    The only write path to the appointments collection.

    book_slot and update_status both run inside the store's atomic
    transaction so at most one booking per (provider, day, slot) is ever
    scheduled.
    """

    def __init__(self, store: Optional[DocumentStore] = None, table: Optional[str] = None):
        self.store = store or get_store()
        self.table = table or settings.BOOKINGS_TABLE

    @staticmethod
    def _slot_filters(provider_id: str, day: date, time_slot_label: Optional[str] = None) -> List[Filter]:
        filters = [
            ("provider_id", "==", provider_id),
            ("day", "==", day.isoformat()),
            ("status", "==", BookingStatus.SCHEDULED.value),
        ]
        if time_slot_label is not None:
            filters.append(("time_slot_label", "==", time_slot_label))
        return filters

    @staticmethod
    def _to_booking(record: Dict[str, Any]) -> Booking:
        try:
            return Booking.from_record(record)
        except ValidationError as e:
            logger.error(f"❌ Malformed booking record {record.get('id')}: {e}")
            raise PersistenceError(f"Malformed booking record {record.get('id')}") from e

    async def get_booked_slots(self, provider_id: str, day: Union[date, datetime, str]) -> Set[str]:
        day = to_calendar_day(day)
        records = await self.store.query(self.table, self._slot_filters(provider_id, day))
        return {self._to_booking(record).time_slot_label for record in records}

    async def get_available_slots(self, provider_id: str, day: Union[date, datetime, str], period: str) -> List[str]:
        candidates = period_slots(period)
        booked = await self.get_booked_slots(provider_id, day)
        return [label for label in candidates if label not in booked]

    async def book_slot(self, request: Union[BookingRequest, Dict[str, Any]]) -> Booking:
        """
        Atomically checks the slot is free and creates a scheduled booking.
        Raises ConflictError if another scheduled booking already holds it.
        """
        if not isinstance(request, BookingRequest):
            request = BookingRequest.model_validate(request)

        logger.info(
            f"📥 Booking request - provider: {request.provider_id}, day: {request.day}, "
            f"slot: '{request.time_slot_label}', requester: {request.requester_id}"
        )

        async def attempt(txn: Transaction) -> Booking:
            taken = await txn.query(
                self.table,
                self._slot_filters(request.provider_id, request.day, request.time_slot_label),
            )
            if taken:
                raise ConflictError(request.provider_id, request.day.isoformat(), request.time_slot_label)

            now = _now_iso()
            record = {
                "provider_id": request.provider_id,
                "requester_id": request.requester_id,
                "day": request.day.isoformat(),
                "time_slot_label": request.time_slot_label,
                "status": BookingStatus.SCHEDULED.value,
                "metadata": dict(request.metadata),
                "notes": None,
                "created_at": now,
                "updated_at": now,
            }
            booking_id = txn.insert(self.table, record)
            return self._to_booking({**record, "id": booking_id})

        try:
            booking = await self.store.run_atomic(attempt)
        except ConflictError as e:
            logger.warning(f"⛔ {e}")
            raise

        logger.info(f"✅ Booking {booking.id} created for {booking.requester_id} ({booking.day} {booking.time_slot_label})")
        return booking

    async def update_status(
        self,
        booking_id: str,
        new_status: Union[BookingStatus, str],
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Any status may move to any other. Moving back to 'scheduled'
        re-checks the slot and raises ConflictError if it was taken meanwhile.
        Returns the booking as committed.
        """
        new_status = BookingStatus(new_status)

        async def attempt(txn: Transaction) -> Tuple[BookingStatus, Booking]:
            record = await txn.get(self.table, booking_id)
            if record is None:
                raise NotFoundError(booking_id)
            booking = self._to_booking(record)

            if new_status is BookingStatus.SCHEDULED and booking.status is not BookingStatus.SCHEDULED:
                holders = await txn.query(
                    self.table,
                    self._slot_filters(booking.provider_id, booking.day, booking.time_slot_label),
                )
                if any(holder["id"] != booking_id for holder in holders):
                    raise ConflictError(booking.provider_id, booking.day.isoformat(), booking.time_slot_label)

            changes: Dict[str, Any] = {"status": new_status.value, "updated_at": _now_iso()}
            if notes:
                changes["notes"] = notes
            txn.update(self.table, booking_id, changes)
            return booking.status, self._to_booking({**record, **changes})

        try:
            previous, updated = await self.store.run_atomic(attempt)
        except NotFoundError:
            logger.warning(f"⚠️ Status update for unknown booking {booking_id}")
            raise
        except ConflictError as e:
            logger.warning(f"⛔ Cannot reinstate booking {booking_id}: {e}")
            raise

        logger.info(f"🔄 Booking {booking_id}: {previous.value} -> {new_status.value}")
        return updated

    async def cancel_booking(self, booking_id: str) -> Booking:
        return await self.update_status(booking_id, BookingStatus.CANCELLED)

    async def get_booking(self, booking_id: str) -> Booking:
        record = await self.store.get(self.table, booking_id)
        if record is None:
            raise NotFoundError(booking_id)
        return self._to_booking(record)

    async def list_requester_bookings(self, requester_id: str) -> List[Booking]:
        """A requester's bookings, newest day first."""
        records = await self.store.query(self.table, [("requester_id", "==", requester_id)])
        bookings = [self._to_booking(record) for record in records]
        return sorted(bookings, key=lambda b: (-b.day.toordinal(), slot_sort_key(b.time_slot_label)))

    async def list_provider_bookings(
        self,
        provider_id: str,
        day: Optional[Union[date, datetime, str]] = None,
    ) -> List[Booking]:
        filters: List[Filter] = [("provider_id", "==", provider_id)]
        if day is not None:
            filters.append(("day", "==", to_calendar_day(day).isoformat()))

        records = await self.store.query(self.table, filters)
        bookings = [self._to_booking(record) for record in records]
        return sorted(bookings, key=lambda b: (b.day, slot_sort_key(b.time_slot_label)))
