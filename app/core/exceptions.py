"""
Error taxonomy for the booking core.

ConflictError and NotFoundError are expected, user-facing outcomes.
PersistenceError wraps any storage/transport failure so callers can tell
"nothing booked" apart from "could not ask".
"""


class BookingError(Exception):
    """Base class for every error raised by the booking core."""


class ConflictError(BookingError):
    def __init__(self, provider_id: str, day: str, time_slot_label: str):
        self.provider_id = provider_id
        self.day = day
        self.time_slot_label = time_slot_label
        super().__init__(
            f"Slot '{time_slot_label}' on {day} is already booked for provider {provider_id}"
        )


class NotFoundError(BookingError):
    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} does not exist")


class PersistenceError(BookingError):
    """Storage or transport failure. Safe to retry reads; re-check before retrying writes."""


class TransactionAborted(BookingError):
    """A concurrent commit touched this transaction's read set. Handled inside run_atomic."""
