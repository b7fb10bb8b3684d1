"""Booking domain errors, translated to HTTP responses by the handler in main.py"""

from typing import Optional


class BookingError(Exception):
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SlotConflictError(BookingError):
    """The (date, time) slot already holds a non-cancelled booking"""

    status_code = 409
    code = "slot_conflict"

    def __init__(self, date: str, time: str, booking_id: Optional[int] = None):
        super().__init__(
            f"The slot {date} {time} is already booked",
            {"date": date, "time": time, "bookingId": booking_id},
        )
        self.date = date
        self.time = time
        self.booking_id = booking_id


class PastDateError(BookingError):
    code = "past_date"

    def __init__(self, date: str):
        super().__init__("Cannot book appointments in the past", {"date": date})
        self.date = date


class OutOfRangeError(BookingError):
    code = "out_of_range"

    def __init__(self, date: str, advance_days: int):
        super().__init__(
            f"Bookings can only be made up to {advance_days} days in advance",
            {"date": date, "advanceBookingDays": advance_days},
        )
        self.date = date
        self.advance_days = advance_days


class NotFoundError(BookingError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found", {"id": entity_id})
        self.entity = entity
        self.entity_id = entity_id
