"""
Slot availability
Builds the day grid shown to the booking form from the ledger and blocked slots.
"""
import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy.orm import Session, joinedload

from ..domain.bookings.repository import CANCELLED_STATUS
from ..models import BOOKING_STATUSES, BlockedSlot, Booking

logger = logging.getLogger(__name__)

# Any booking that still holds its slot
OCCUPYING_STATUSES = tuple(s for s in BOOKING_STATUSES if s != CANCELLED_STATUS)


def generate_time_slots(slot_duration: int = 30) -> list[str]:
    """HH:MM times covering the whole day at the given step"""
    if slot_duration <= 0:
        raise ValueError("slot_duration must be positive")
    return [f"{m // 60:02d}:{m % 60:02d}" for m in range(0, 24 * 60, slot_duration)]


def find_block(time: str, blocked: list[BlockedSlot]) -> Optional[BlockedSlot]:
    """A block with no bounds covers the whole day; bounded blocks are inclusive on both ends"""
    for block in blocked:
        if not block.start_time and not block.end_time:
            return block
        if block.start_time and block.end_time and block.start_time <= time <= block.end_time:
            return block
    return None


def _occupying_bookings(db: Session, day: str) -> dict[str, Booking]:
    bookings = (
        db.query(Booking)
        .options(joinedload(Booking.client))
        .filter(Booking.date == day, Booking.status.in_(OCCUPYING_STATUSES))
        .all()
    )
    return {b.time: b for b in bookings}


def _blocked_slots(db: Session, day: str) -> list[BlockedSlot]:
    return db.query(BlockedSlot).filter(BlockedSlot.date == day).all()


def get_day_slots(db: Session, day: str, today: date, slot_duration: int = 30) -> dict[str, Any]:
    """
    Per-slot availability for one date.

    Past dates are never available and only slots with a booking or a block
    are returned for them.
    """
    is_past = date.fromisoformat(day) < today
    bookings = _occupying_bookings(db, day)
    blocked = _blocked_slots(db, day)

    slots = []
    for time in generate_time_slots(slot_duration):
        booking = bookings.get(time)
        block = find_block(time, blocked)
        slots.append(
            {
                "time": time,
                "available": booking is None and block is None and not is_past,
                "clientName": booking.client.name if booking and booking.client else None,
                "clientPhone": booking.client.phone if booking and booking.client else None,
                "bookingId": booking.id if booking else None,
                "status": booking.status if booking else None,
                "blocked": block is not None,
                "reason": block.reason if block else None,
            }
        )

    if is_past:
        slots = [s for s in slots if s["bookingId"] or s["blocked"]]

    return {
        "date": day,
        "isPastDate": is_past,
        "slots": slots,
        "summary": {
            "total": len(slots),
            "available": sum(1 for s in slots if s["available"]),
            "booked": sum(1 for s in slots if s["bookingId"]),
            "blocked": sum(1 for s in slots if s["blocked"]),
        },
    }


def get_day_summary(db: Session, day: str, slot_duration: int = 30) -> dict[str, Any]:
    grid = generate_time_slots(slot_duration)
    bookings = _occupying_bookings(db, day)
    blocked = _blocked_slots(db, day)

    booked = sum(1 for time in grid if time in bookings)
    blocked_count = sum(1 for time in grid if time not in bookings and find_block(time, blocked))
    available = len(grid) - booked - blocked_count
    return {
        "total": len(grid),
        "available": available,
        "booked": booked,
        "blocked": blocked_count,
        "hasAvailability": available > 0,
    }
