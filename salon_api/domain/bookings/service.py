"""Booking service - Ledger mutations followed by calendar fan-out and notifications"""

import logging
from datetime import date
from typing import Callable, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from ...models import Admin, Booking
from ...services.activity_logger import ActionType, EntityType, log_activity
from ...services.calendar_fanout import CalendarFanOut
from ...services.google_calendar_service import BookingEventFields, CalendarGateway
from ...services.salon_config_service import get_advance_booking_days, get_or_create_config
from ...services.whatsapp_service import NOTIFICATION_FAILED, WhatsAppSender
from ..calendars.service import get_active_targets
from ..clients.service import ClientService
from .repository import ACTIVE_STATUS, CANCELLED_STATUS, BookingRepository, SlotLedger
from .schemas import BookingCreate, BookingUpdate

logger = logging.getLogger(__name__)


def _snapshot(booking: Booking) -> dict:
    return {
        "date": booking.date,
        "time": booking.time,
        "status": booking.status,
        "service": booking.service,
        "notes": booking.notes,
    }


class BookingService:
    """
    Booking workflows.

    The ledger write always commits first. Calendar and WhatsApp side effects run
    afterwards and can only add warnings to the response, never undo the booking.
    """

    def __init__(
        self,
        db: Session,
        gateway: CalendarGateway,
        notifier: Optional[WhatsAppSender] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.ledger = SlotLedger(db, advance_booking_days=get_advance_booking_days(db), today=today)
        self.fanout = CalendarFanOut(gateway)
        self.notifier = notifier
        self.clients = ClientService(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_bookings(
        self,
        booking_date: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        client_id: Optional[int] = None,
    ) -> list[Booking]:
        return self.repo.list_bookings(self.db, booking_date, status, client_id=client_id, limit=limit)

    def get_booking(self, booking_id: int) -> Booking:
        return self.ledger.get(booking_id)

    # ------------------------------------------------------------------
    # Calendar helpers
    # ------------------------------------------------------------------

    async def _publish(self, booking: Booking) -> list[str]:
        """Create events for a booking in every active calendar and store the references"""
        result = await self.fanout.create(BookingEventFields.from_booking(booking), get_active_targets(self.db))
        if result.references:
            self.ledger.set_external_refs(booking.id, result.references)
        elif not result.outcomes:
            return ["No active calendar configured; booking not added to any calendar"]
        return result.warnings

    async def _unpublish(self, booking_id: int, references: list[str]) -> list[str]:
        """Best-effort delete from every active calendar, then clear the stored references"""
        result = await self.fanout.delete(references, get_active_targets(self.db))
        if references:
            self.ledger.set_external_refs(booking_id, [])
        return [] if result.success else result.warnings

    async def _republish(self, booking: Booking) -> list[str]:
        references = list(booking.google_event_ids or [])
        if not references:
            return []
        targets = get_active_targets(self.db)
        if not targets:
            logger.warning(f"⚠️ No active calendar, keeping events of booking {booking.id} as they are")
            return ["No active calendar configured; calendar events not updated"]
        result = await self.fanout.update(references, BookingEventFields.from_booking(booking), targets)
        warnings = result.warnings if not result.success else []
        if result.references != references:
            self.ledger.set_external_refs(booking.id, result.references)
        if not result.references:
            # Every stored event is gone; publish afresh
            logger.info(f"🔄 Booking {booking.id} lost all calendar events, recreating")
            return await self._publish(self.ledger.get(booking.id))
        return warnings

    async def _notify(self, booking: Booking) -> None:
        if self.notifier is None:
            return
        try:
            salon_name = get_or_create_config(self.db).salon_name
            status, error = await self.notifier.send_booking_confirmation(booking, salon_name)
        except Exception as e:
            logger.error(f"❌ WhatsApp confirmation failed for booking {booking.id}: {e}")
            status, error = NOTIFICATION_FAILED, str(e)
        self.repo.set_notification(self.db, booking.id, status, error)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_booking(
        self, data: BookingCreate, admin: Optional[Admin] = None, request: Optional[Request] = None
    ) -> tuple[Booking, list[str]]:
        """
        Reserve a slot for the client identified by phone.

        Raises:
            PastDateError, OutOfRangeError, SlotConflictError
        """
        self.ledger.check_bookable_date(data.date)
        client = self.clients.resolve_or_create(data.name, data.phone)

        booking = self.ledger.reserve(
            data.date,
            data.time,
            client.id,
            service=data.service,
            notes=data.notes,
            source="admin" if admin else "public",
        )
        logger.info(f"📥 Booking {booking.id} created for {client.name} on {booking.date} {booking.time}")

        warnings = await self._publish(booking)
        if warnings:
            logger.warning(f"⚠️ Booking {booking.id} saved with calendar warnings: {warnings}")

        await self._notify(self.ledger.get(booking.id))

        if admin:
            log_activity(
                self.db,
                admin_id=admin.id,
                action=ActionType.BOOKING_CREATE,
                entity_type=EntityType.BOOKING,
                entity_id=booking.id,
                description=f"Created booking for {client.name} on {data.date} {data.time}",
                new_values={"date": data.date, "time": data.time, "clientId": client.id},
                request=request,
            )

        return self.ledger.get(booking.id), warnings

    async def update_booking(
        self,
        booking_id: int,
        data: BookingUpdate,
        admin: Optional[Admin] = None,
        request: Optional[Request] = None,
    ) -> tuple[Booking, list[str]]:
        """
        Reschedule, edit or change the status of a booking.

        Raises:
            NotFoundError, PastDateError, OutOfRangeError, SlotConflictError
        """
        booking = self.ledger.get(booking_id)
        old_values = _snapshot(booking)
        references = list(booking.google_event_ids or [])
        warnings: list[str] = []

        if data.changes_event:
            booking = self.ledger.reschedule(
                booking_id, data.date, data.time, service=data.service, notes=data.notes
            )

        status_changed = data.status is not None and data.status != old_values["status"]
        if status_changed and data.status == CANCELLED_STATUS:
            booking, fresh = self.ledger.cancel(booking_id)
            if fresh:
                warnings = await self._unpublish(booking_id, references)
        elif status_changed:
            booking, previous = self.ledger.set_status(booking_id, data.status)
            if previous == CANCELLED_STATUS and data.status == ACTIVE_STATUS:
                warnings = await self._publish(booking)
            elif data.changes_event:
                warnings = await self._republish(booking)
        elif data.changes_event and booking.status != CANCELLED_STATUS:
            warnings = await self._republish(booking)

        booking = self.ledger.get(booking_id)
        if admin:
            log_activity(
                self.db,
                admin_id=admin.id,
                action=ActionType.BOOKING_STATUS_CHANGE if status_changed else ActionType.BOOKING_UPDATE,
                entity_type=EntityType.BOOKING,
                entity_id=booking_id,
                description=(
                    f"Changed booking {booking_id} status {old_values['status']} → {booking.status}"
                    if status_changed
                    else f"Updated booking {booking_id}"
                ),
                old_values=old_values,
                new_values=data.model_dump(exclude_none=True),
                request=request,
            )
        return booking, warnings

    async def delete_booking(
        self, booking_id: int, admin: Optional[Admin] = None, request: Optional[Request] = None
    ) -> list[str]:
        """Hard-delete the row, then remove its events from every active calendar"""
        booking = self.ledger.get(booking_id)
        old_values = _snapshot(booking)
        references = self.ledger.delete(booking_id)

        result = await self.fanout.delete(references, get_active_targets(self.db))
        warnings = [] if result.success else result.warnings

        if admin:
            log_activity(
                self.db,
                admin_id=admin.id,
                action=ActionType.BOOKING_DELETE,
                entity_type=EntityType.BOOKING,
                entity_id=booking_id,
                description=f"Deleted booking {booking_id} ({old_values['date']} {old_values['time']})",
                old_values=old_values,
                request=request,
            )
        return warnings
