"""
Calendar repair
Publishes bookings that reconciliation found missing from the calendar. All
failures are soft: they are counted and reported, and the booking is picked up
again by the next reconciliation pass.
"""
import logging
from typing import Any, Iterable

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..domain.bookings.repository import ACTIVE_STATUS, BookingRepository, SlotLedger
from ..domain.calendars.service import get_active_targets
from .calendar_fanout import CalendarFanOut
from .calendar_reconciliation import FindingType, ReconciliationFinding
from .google_calendar_service import BookingEventFields

logger = logging.getLogger(__name__)


class RepairReport(BaseModel):
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = []
    repaired: list[dict[str, Any]] = []

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "created": self.succeeded,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": self.errors,
            "repaired": self.repaired,
        }


class RepairExecutor:
    def __init__(self, db: Session, fanout: CalendarFanOut):
        self.db = db
        self.fanout = fanout
        self.ledger = SlotLedger(db)

    async def repair(self, findings: Iterable[ReconciliationFinding]) -> RepairReport:
        """
        Re-create calendar events for missing_event_id / missing_in_calendar findings.

        Event fields are rebuilt from the ledger, not from the finding. Bookings
        that stopped being confirmed since the finding was produced are skipped.
        Only the reference column is written back.
        """
        report = RepairReport()

        for finding in findings:
            if not finding.repairable or finding.booking_id is None:
                continue

            booking = BookingRepository.get_by_id(self.db, finding.booking_id)
            if booking is None or booking.status != ACTIVE_STATUS:
                report.skipped += 1
                logger.info(f"⏭️ Skipping repair of booking {finding.booking_id}: no longer confirmed")
                continue

            report.attempted += 1
            label = f"Booking {finding.booking_id}"

            try:
                label = f"Booking {booking.id} ({finding.client_name or booking.client.name} {booking.date} {booking.time})"
                targets = get_active_targets(self.db)
                if not targets:
                    report.failed += 1
                    report.errors.append(f"{label}: no active calendar targets")
                    continue

                stale = list(booking.google_event_ids or [])
                if finding.type == FindingType.MISSING_IN_CALENDAR and stale:
                    # Clear leftovers in secondary calendars before re-publishing
                    await self.fanout.delete(stale, targets)

                fields = BookingEventFields.from_booking(booking)
                result = await self.fanout.create(fields, targets)

                if result.success:
                    self.ledger.set_external_refs(booking.id, result.references)
                    report.succeeded += 1
                    report.repaired.append(
                        {"bookingId": booking.id, "googleEventIds": result.references}
                    )
                    logger.info(f"🔧 Repaired {label}: {result.primary_reference}")
                else:
                    report.failed += 1
                    reason = "; ".join(result.warnings) or "calendar create failed"
                    report.errors.append(f"{label}: {reason}")
                    logger.warning(f"⚠️ Repair failed for {label}: {reason}")
            except Exception as e:
                self.db.rollback()
                report.failed += 1
                report.errors.append(f"{label}: {e}")
                logger.error(f"❌ Unexpected error repairing {label}: {e}")

        logger.info(
            f"🔧 Repair finished: {report.succeeded}/{report.attempted} succeeded, "
            f"{report.failed} failed, {report.skipped} skipped"
        )
        return report
