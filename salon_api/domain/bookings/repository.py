"""Booking repository - Slot ledger and booking queries"""

import logging
from datetime import date, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ...config import VENUE_TIMEZONE
from ...models import Booking
from ...shared.dates import venue_today
from .errors import NotFoundError, OutOfRangeError, PastDateError, SlotConflictError

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "confirmed"
CANCELLED_STATUS = "cancelled"
DEFAULT_ADVANCE_BOOKING_DAYS = 30

# Fields a caller may set on a booking alongside the slot itself
DETAIL_FIELDS = ("client_id", "service", "notes", "source")


class BookingRepository:
    """Repository for booking read queries"""

    @staticmethod
    def get_by_id(db: Session, booking_id: int) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.client))
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_by_slot(db: Session, booking_date: str, booking_time: str) -> Optional[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.date == booking_date, Booking.time == booking_time)
            .first()
        )

    @staticmethod
    def list_bookings(
        db: Session,
        booking_date: Optional[str] = None,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        limit: int = 100,
    ) -> list[Booking]:
        query = db.query(Booking).options(joinedload(Booking.client))
        if booking_date:
            query = query.filter(Booking.date == booking_date)
        if status:
            query = query.filter(Booking.status == status)
        if client_id:
            query = query.filter(Booking.client_id == client_id)
        return query.order_by(Booking.date.desc(), Booking.time.desc()).limit(limit).all()

    @staticmethod
    def set_notification(db: Session, booking_id: int, status: str, error: Optional[str]) -> None:
        db.query(Booking).filter(Booking.id == booking_id).update(
            {Booking.notification_status: status, Booking.notification_error: error},
            synchronize_session=False,
        )
        db.commit()

    @staticmethod
    def delete(db: Session, booking: Booking) -> None:
        db.delete(booking)
        db.commit()


class SlotLedger:
    """
    Authoritative booking store.

    Owns the rule that a (date, time) slot holds at most one non-cancelled
    booking. Check-then-write happens inside one transaction and the
    ``uq_bookings_slot`` unique constraint catches whatever a concurrent writer
    slips in between; a lost race always surfaces as SlotConflictError.
    """

    def __init__(
        self,
        db: Session,
        advance_booking_days: int = DEFAULT_ADVANCE_BOOKING_DAYS,
        today: Optional[Callable[[], date]] = None,
        timezone: str = VENUE_TIMEZONE,
    ):
        self.db = db
        self.advance_booking_days = advance_booking_days
        self._today = today or (lambda: venue_today(timezone))

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def check_bookable_date(self, booking_date: str) -> None:
        requested = date.fromisoformat(booking_date)
        today = self._today()
        if requested < today:
            raise PastDateError(booking_date)
        if requested > today + timedelta(days=self.advance_booking_days):
            raise OutOfRangeError(booking_date, self.advance_booking_days)

    def _get_or_404(self, booking_id: int) -> Booking:
        booking = BookingRepository.get_by_id(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _commit_or_conflict(self, booking_date: str, booking_time: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Lost race for slot {booking_date} {booking_time}")
            raise SlotConflictError(booking_date, booking_time) from e

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def reserve(self, booking_date: str, booking_time: str, client_id: int, **details) -> Booking:
        """
        Reserve a slot for a client.

        A cancelled booking already sitting on the slot is reactivated in place
        (new client and details, status confirmed, references cleared) so one row
        represents the slot across its whole cancel/rebook history.

        Raises:
            PastDateError, OutOfRangeError, SlotConflictError
        """
        self.check_bookable_date(booking_date)

        values = {key: details[key] for key in DETAIL_FIELDS if key in details}
        values["client_id"] = client_id

        existing = BookingRepository.get_by_slot(self.db, booking_date, booking_time)
        if existing and existing.status != CANCELLED_STATUS:
            raise SlotConflictError(booking_date, booking_time, existing.id)

        if existing:
            reactivated = (
                self.db.query(Booking)
                .filter(Booking.id == existing.id, Booking.status == CANCELLED_STATUS)
                .update(
                    {
                        Booking.client_id: client_id,
                        Booking.service: values.get("service"),
                        Booking.notes: values.get("notes"),
                        Booking.source: values.get("source") or "public",
                        Booking.status: ACTIVE_STATUS,
                        Booking.google_event_ids: [],
                        Booking.notification_status: None,
                        Booking.notification_error: None,
                    },
                    synchronize_session=False,
                )
            )
            if not reactivated:
                self.db.rollback()
                raise SlotConflictError(booking_date, booking_time, existing.id)
            self._commit_or_conflict(booking_date, booking_time)
            logger.info(f"♻️ Reactivated cancelled booking {existing.id} for {booking_date} {booking_time}")
            return self._get_or_404(existing.id)

        booking = Booking(
            date=booking_date,
            time=booking_time,
            status=ACTIVE_STATUS,
            google_event_ids=[],
            **values,
        )
        self.db.add(booking)
        self._commit_or_conflict(booking_date, booking_time)
        self.db.refresh(booking)
        logger.info(f"✅ Booking {booking.id} reserved for {booking_date} {booking_time}")
        return booking

    def reschedule(
        self,
        booking_id: int,
        new_date: Optional[str] = None,
        new_time: Optional[str] = None,
        **details,
    ) -> Booking:
        """
        Move a booking and/or change its details.

        The target slot is checked excluding the booking being moved. A cancelled
        row parked on the target slot is removed in the same transaction so the
        slot keeps a single row.

        Raises:
            NotFoundError, PastDateError, OutOfRangeError, SlotConflictError
        """
        booking = self._get_or_404(booking_id)
        target_date = new_date or booking.date
        target_time = new_time or booking.time
        moving = (target_date, target_time) != (booking.date, booking.time)

        if moving:
            if target_date != booking.date:
                self.check_bookable_date(target_date)

            occupant = (
                self.db.query(Booking)
                .filter(
                    Booking.date == target_date,
                    Booking.time == target_time,
                    Booking.id != booking.id,
                )
                .first()
            )
            if occupant and occupant.status != CANCELLED_STATUS:
                raise SlotConflictError(target_date, target_time, occupant.id)
            if occupant:
                logger.info(f"🧹 Removing cancelled booking {occupant.id} parked on {target_date} {target_time}")
                self.db.delete(occupant)
                self.db.flush()

            booking.date = target_date
            booking.time = target_time

        for key in DETAIL_FIELDS:
            if key in details and details[key] is not None:
                setattr(booking, key, details[key])

        self._commit_or_conflict(target_date, target_time)
        self.db.refresh(booking)
        return booking

    def cancel(self, booking_id: int) -> tuple[Booking, bool]:
        """
        Cancel a booking, keeping its row.

        Returns:
            (booking, fresh) where fresh is False when it was already cancelled
        """
        booking = self._get_or_404(booking_id)
        fresh = booking.status != CANCELLED_STATUS
        if fresh:
            booking.status = CANCELLED_STATUS
            self.db.commit()
            self.db.refresh(booking)
            logger.info(f"🚫 Booking {booking_id} cancelled")
        return booking, fresh

    def set_status(self, booking_id: int, status: str) -> tuple[Booking, str]:
        """
        Change status for non-cancelling transitions.

        Reactivating a cancelled booking never conflicts: the row is the slot.

        Returns:
            (booking, previous_status)
        """
        booking = self._get_or_404(booking_id)
        previous = booking.status
        if previous != status:
            booking.status = status
            self.db.commit()
            self.db.refresh(booking)
        return booking, previous

    def set_external_refs(self, booking_id: int, references: list[str]) -> bool:
        """Write only the reference column, leaving status/date/time untouched"""
        updated = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id)
            .update({Booking.google_event_ids: list(references)}, synchronize_session=False)
        )
        self.db.commit()
        return bool(updated)

    def delete(self, booking_id: int) -> list[str]:
        """Hard-delete a booking, returning the references it held"""
        booking = self._get_or_404(booking_id)
        references = list(booking.google_event_ids or [])
        BookingRepository.delete(self.db, booking)
        logger.info(f"🗑️ Booking {booking_id} deleted")
        return references

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, booking_id: int) -> Booking:
        return self._get_or_404(booking_id)

    def list_active_in_range(self, start_date: str, end_date: str) -> list[Booking]:
        """Confirmed bookings with start_date <= date <= end_date, ordered by (date, time)"""
        return (
            self.db.query(Booking)
            .options(joinedload(Booking.client))
            .filter(
                Booking.status == ACTIVE_STATUS,
                Booking.date >= start_date,
                Booking.date <= end_date,
            )
            .order_by(Booking.date, Booking.time)
            .all()
        )
