"""
Calendar reconciliation
Read-only comparison of confirmed bookings against the primary calendar. Produces
one finding per booking plus one per unreferenced booking event. Never writes.
"""
import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..domain.bookings.repository import SlotLedger
from ..domain.calendars.service import get_primary_target
from .google_calendar_service import CalendarGateway, ProviderError

logger = logging.getLogger(__name__)


class FindingType(str, Enum):
    IN_CALENDAR = "in_calendar"
    MISSING_EVENT_ID = "missing_event_id"
    MISSING_IN_CALENDAR = "missing_in_calendar"
    ORPHANED_IN_CALENDAR = "orphaned_in_calendar"


REPAIRABLE_TYPES = (FindingType.MISSING_EVENT_ID, FindingType.MISSING_IN_CALENDAR)

FINDING_ACTIONS = {
    FindingType.MISSING_EVENT_ID: "create_event",
    FindingType.MISSING_IN_CALENDAR: "recreate_event",
    FindingType.ORPHANED_IN_CALENDAR: "review_manually",
}


class ReconciliationFinding(BaseModel):
    type: FindingType
    booking_id: Optional[int] = None
    client_name: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    references: list[str] = []
    event_id: Optional[str] = None
    event_summary: Optional[str] = None
    event_start: Optional[str] = None

    @property
    def repairable(self) -> bool:
        return self.type in REPAIRABLE_TYPES

    @property
    def action(self) -> Optional[str]:
        return FINDING_ACTIONS.get(self.type)

    def to_dict(self) -> dict[str, Any]:
        if self.type == FindingType.ORPHANED_IN_CALENDAR:
            return {
                "type": self.type.value,
                "eventId": self.event_id,
                "eventSummary": self.event_summary,
                "eventStart": self.event_start,
                "action": self.action,
            }
        detail = {
            "type": self.type.value,
            "bookingId": self.booking_id,
            "clientName": self.client_name,
            "date": self.date,
            "time": self.time,
            "action": self.action,
        }
        if self.references:
            detail["googleEventId"] = self.references[0]
            detail["googleEventIds"] = self.references
        return detail


class ReconciliationReport(BaseModel):
    start_date: str
    end_date: str
    calendar_id: str
    findings: list[ReconciliationFinding] = []

    def of_type(self, finding_type: FindingType) -> list[ReconciliationFinding]:
        return [f for f in self.findings if f.type == finding_type]

    @property
    def total_bookings(self) -> int:
        return sum(1 for f in self.findings if f.type != FindingType.ORPHANED_IN_CALENDAR)

    @property
    def repairable(self) -> list[ReconciliationFinding]:
        return [f for f in self.findings if f.repairable]

    @property
    def orphaned(self) -> list[ReconciliationFinding]:
        return self.of_type(FindingType.ORPHANED_IN_CALENDAR)

    def to_summary(self) -> dict[str, Any]:
        return {
            "totalBookings": self.total_bookings,
            "inCalendar": len(self.of_type(FindingType.IN_CALENDAR)),
            "missingInCalendar": len(self.of_type(FindingType.MISSING_IN_CALENDAR)),
            "missingEventIds": len(self.of_type(FindingType.MISSING_EVENT_ID)),
            "details": [f.to_dict() for f in self.repairable],
            "orphanedEvents": len(self.orphaned),
            "orphanedDetails": [f.to_dict() for f in self.orphaned],
            "calendarId": self.calendar_id,
            "dateRange": {"startDate": self.start_date, "endDate": self.end_date},
        }


class ReconciliationUnavailable(Exception):
    """The primary calendar could not be listed, so no comparison is possible"""

    def __init__(self, message: str, error: Optional[ProviderError] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class ReconciliationEngine:
    """
    Compares the slot ledger with the primary calendar.

    Only the primary target is listed. Secondary calendars receive writes
    through the fan-out but their drift is not checked here.
    """

    def __init__(self, db: Session, gateway: CalendarGateway, title_prefix: Optional[str] = None):
        self.db = db
        self.gateway = gateway
        self.title_prefix = title_prefix or gateway.event_prefix
        self.ledger = SlotLedger(db)

    async def reconcile(self, start_date: str, end_date: str) -> ReconciliationReport:
        """
        Classify every confirmed booking and every booking-titled event in the window.

        Raises:
            ReconciliationUnavailable: no primary calendar or listing failed
        """
        primary = get_primary_target(self.db)
        if primary is None:
            raise ReconciliationUnavailable("No active calendar configured")

        logger.info(f"🔍 Reconciling bookings {start_date} → {end_date} against {primary.calendar_id}")

        listing = await self.gateway.list_events(
            primary.calendar_id, start_date, end_date, title_prefix=self.title_prefix
        )
        if not listing.ok:
            raise ReconciliationUnavailable(
                f"Could not list calendar events: {listing.error}", listing.error
            )

        event_ids = {event.id for event in listing.events}
        bookings = self.ledger.list_active_in_range(start_date, end_date)

        findings: list[ReconciliationFinding] = []
        referenced: set[str] = set()

        for booking in bookings:
            references = list(booking.google_event_ids or [])
            referenced.update(references)

            if not references:
                finding_type = FindingType.MISSING_EVENT_ID
            elif not event_ids.intersection(references):
                finding_type = FindingType.MISSING_IN_CALENDAR
            else:
                finding_type = FindingType.IN_CALENDAR

            if finding_type != FindingType.IN_CALENDAR:
                logger.warning(
                    f"⚠️ Booking {booking.id} ({booking.date} {booking.time}) is {finding_type.value}"
                )

            findings.append(
                ReconciliationFinding(
                    type=finding_type,
                    booking_id=booking.id,
                    client_name=booking.client.name if booking.client else None,
                    date=booking.date,
                    time=booking.time,
                    references=references,
                )
            )

        for event in listing.events:
            if event.id in referenced:
                continue
            findings.append(
                ReconciliationFinding(
                    type=FindingType.ORPHANED_IN_CALENDAR,
                    event_id=event.id,
                    event_summary=event.summary,
                    event_start=event.start,
                )
            )

        report = ReconciliationReport(
            start_date=start_date,
            end_date=end_date,
            calendar_id=primary.calendar_id,
            findings=findings,
        )
        logger.info(
            f"📊 Reconciliation: {report.total_bookings} bookings, "
            f"{len(report.of_type(FindingType.IN_CALENDAR))} in calendar, "
            f"{len(report.repairable)} repairable, {len(report.orphaned)} orphaned"
        )
        return report
