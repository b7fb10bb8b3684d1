"""
Sync router - compare bookings with Google Calendar and repair drift.

verify and repair run the reconciliation against the primary calendar; repair
with autoRepair publishes the missing bookings through the write fan-out.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...dependencies import get_calendar_gateway, get_sync_job
from ...models import Admin
from ...rate_limiter import admin_rate_limit
from ...services.activity_logger import ActionType, EntityType, log_activity
from ...services.calendar_fanout import CalendarFanOut
from ...services.calendar_reconciliation import (
    ReconciliationEngine,
    ReconciliationReport,
    ReconciliationUnavailable,
)
from ...services.calendar_repair import RepairExecutor
from ...services.google_calendar_service import CalendarGateway
from ...services.sync_scheduler import SyncJob
from ...shared.dates import shift_date, venue_today
from ...shared.validators import validate_date_string
from ..calendars.service import get_primary_target
from .schemas import SyncRepairRequest, SyncRunRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"], dependencies=[Depends(admin_rate_limit)])

AUTO_VERIFY_DAYS = 30


def _require_range(start_date: Optional[str], end_date: Optional[str]) -> tuple[str, str]:
    if not start_date or not end_date:
        raise HTTPException(
            status_code=400,
            detail="startDate and endDate query parameters are required (YYYY-MM-DD)",
        )
    try:
        validate_date_string(start_date)
        validate_date_string(end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")
    return start_date, end_date


async def _reconcile(
    db: Session, gateway: CalendarGateway, start_date: str, end_date: str
) -> ReconciliationReport:
    try:
        return await ReconciliationEngine(db, gateway).reconcile(start_date, end_date)
    except ReconciliationUnavailable as e:
        logger.error(f"❌ Reconciliation unavailable: {e.message}")
        raise HTTPException(status_code=502, detail=e.message) from None


@router.get("/verify")
async def verify_bookings(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    gateway: CalendarGateway = Depends(get_calendar_gateway),
):
    """Classify every confirmed booking in the range against the primary calendar"""
    start_date, end_date = _require_range(startDate, endDate)
    report = await _reconcile(db, gateway, start_date, end_date)
    return {"success": True, "data": report.to_summary(), "message": "Verification completed"}


@router.post("/repair")
async def repair_bookings(
    data: SyncRepairRequest,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    gateway: CalendarGateway = Depends(get_calendar_gateway),
):
    """
    Without autoRepair, list the bookings that need repair. With autoRepair,
    re-create their calendar events.
    """
    report = await _reconcile(db, gateway, data.startDate, data.endDate)
    missing = report.repairable

    if not missing:
        return {
            "success": True,
            "data": {"repaired": 0, "total": report.total_bookings, "missing": 0},
            "message": "All bookings are in sync with Google Calendar",
        }

    if not data.autoRepair:
        return {
            "success": True,
            "data": {
                "missingBookings": [f.to_dict() for f in missing],
                "total": report.total_bookings,
                "missing": len(missing),
            },
            "message": "Bookings that need repair",
        }

    logger.info(f"🔧 Admin {current_admin.username} repairing {len(missing)} bookings")
    repair_report = await RepairExecutor(db, CalendarFanOut(gateway)).repair(missing)

    log_activity(
        db,
        admin_id=current_admin.id,
        action=ActionType.SYNC_REPAIR,
        entity_type=EntityType.CALENDAR,
        description=(
            f"Repaired calendar sync {data.startDate} → {data.endDate}: "
            f"{repair_report.succeeded}/{repair_report.attempted} recreated"
        ),
        new_values=repair_report.to_dict(),
        request=request,
    )

    return {
        "success": True,
        "data": {**repair_report.to_dict(), "total": report.total_bookings, "missing": len(missing)},
        "message": "Repair completed",
    }


@router.get("/calendar/events")
async def get_calendar_events(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    onlyRelevant: bool = Query(False),
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    gateway: CalendarGateway = Depends(get_calendar_gateway),
):
    """Raw events of the primary calendar; onlyRelevant keeps booking events only"""
    start_date, end_date = _require_range(startDate, endDate)
    primary = get_primary_target(db)
    if primary is None:
        raise HTTPException(status_code=502, detail="No active calendar configured")

    listing = await gateway.list_events(
        primary.calendar_id,
        start_date,
        end_date,
        title_prefix=gateway.event_prefix if onlyRelevant else None,
    )
    if not listing.ok:
        raise HTTPException(status_code=502, detail=f"Could not list calendar events: {listing.error}")

    events = [event.model_dump() for event in listing.events]
    return {"success": True, "data": events, "count": len(events)}


@router.post("/auto-verify")
async def auto_verify(
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
    gateway: CalendarGateway = Depends(get_calendar_gateway),
):
    """Verify the last and next 30 days"""
    today = venue_today().isoformat()
    start_date = shift_date(today, -AUTO_VERIFY_DAYS)
    end_date = shift_date(today, AUTO_VERIFY_DAYS)
    logger.info(f"🔍 Automatic verification {start_date} → {end_date}")

    report = await _reconcile(db, gateway, start_date, end_date)
    return {"success": True, "data": report.to_summary(), "message": "Automatic verification completed"}


@router.post("/run")
async def run_sync(
    data: Optional[SyncRunRequest] = None,
    current_admin: Admin = Depends(get_current_admin),
    job: SyncJob = Depends(get_sync_job),
):
    """Run the scheduled reconcile + repair pass now"""
    force = data.force if data else True
    result = await job.run(force=force)
    return {
        "success": result.error is None,
        "data": result.model_dump(mode="json"),
        "message": "Sync pass finished" if result.ran else f"Sync pass skipped: {result.reason}",
    }


@router.get("/status")
async def sync_status(
    current_admin: Admin = Depends(get_current_admin),
    job: SyncJob = Depends(get_sync_job),
):
    return {"success": True, "data": job.status()}
