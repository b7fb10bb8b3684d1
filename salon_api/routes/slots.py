import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.availability_service import get_day_slots, get_day_summary
from ..services.salon_config_service import get_or_create_config
from ..shared.dates import iter_dates, shift_date, venue_today
from ..shared.validators import validate_date_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slots", tags=["Slots"])

MAX_RANGE_DAYS = 62


def _parse_date(value: str) -> str:
    try:
        return validate_date_string(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get("/{date}")
async def get_slots(date: str, db: Session = Depends(get_db)):
    """Availability of every slot on one date"""
    day = _parse_date(date)
    config = get_or_create_config(db)
    data = get_day_slots(db, day, venue_today(config.timezone), config.slot_duration)
    return {"success": True, "data": data}


@router.get("")
async def get_slots_range(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    limit: int = Query(7, ge=1, le=MAX_RANGE_DAYS),
    db: Session = Depends(get_db),
):
    """Per-day availability counts from startDate to endDate, or for ``limit`` days"""
    if not startDate:
        raise HTTPException(status_code=400, detail="startDate is required")
    start = _parse_date(startDate)
    end = _parse_date(endDate) if endDate else shift_date(start, limit - 1)
    if end < start:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")

    dates = list(iter_dates(start, end))
    if len(dates) > MAX_RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Date range cannot exceed {MAX_RANGE_DAYS} days")

    slot_duration = get_or_create_config(db).slot_duration
    results = {day: get_day_summary(db, day, slot_duration) for day in dates}
    return {
        "success": True,
        "data": results,
        "dateRange": {"start": dates[0], "end": dates[-1], "count": len(dates)},
    }
