import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import get_current_admin
from ..database import get_db
from ..models import Admin
from ..rate_limiter import admin_rate_limit
from ..schemas import ConfigUpdate, WorkingHoursUpdate
from ..services.activity_logger import ActionType, EntityType, log_activity
from ..services.salon_config_service import (
    config_to_dict,
    get_or_create_config,
    get_working_hours,
    replace_working_hours,
    reset_config,
    update_config,
    working_hours_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/config", tags=["Config"])


@router.get("")
async def get_config(db: Session = Depends(get_db)):
    """Public salon configuration with the weekly working hours"""
    config = get_or_create_config(db)
    return {"success": True, "data": config_to_dict(config, get_working_hours(db))}


@router.put("", dependencies=[Depends(admin_rate_limit)])
async def put_config(
    data: ConfigUpdate,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    previous = config_to_dict(get_or_create_config(db), [])
    config = update_config(
        db,
        current_admin.id,
        slot_duration=data.slotDuration,
        advance_booking_days=data.advanceBookingDays,
        salon_name=data.salonName,
        timezone=data.timezone,
        default_services=data.defaultServices,
    )

    log_activity(
        db,
        admin_id=current_admin.id,
        action=ActionType.CONFIG_UPDATE,
        entity_type=EntityType.CONFIG,
        entity_id=config.id,
        description=f"Admin {current_admin.username} updated the salon configuration",
        old_values={k: previous[k] for k in ("slotDuration", "advanceBookingDays", "salonName", "timezone")},
        new_values=data.model_dump(),
        request=request,
    )
    return {
        "success": True,
        "data": config_to_dict(config, get_working_hours(db)),
        "message": "Configuration updated",
    }


@router.put("/working-hours", dependencies=[Depends(admin_rate_limit)])
async def put_working_hours(
    data: WorkingHoursUpdate,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    hours = replace_working_hours(
        db,
        [
            {
                "day_of_week": entry.dayOfWeek,
                "enabled": entry.enabled,
                "start_time": entry.startTime,
                "end_time": entry.endTime,
                "break_start_time": entry.breakStartTime,
                "break_end_time": entry.breakEndTime,
            }
            for entry in data.workingHours
        ],
    )

    log_activity(
        db,
        admin_id=current_admin.id,
        action=ActionType.WORKING_HOURS_UPDATE,
        entity_type=EntityType.WORKING_HOURS,
        description=f"Admin {current_admin.username} updated the working hours",
        new_values=data.model_dump(),
        request=request,
    )
    return {
        "success": True,
        "data": [working_hours_to_dict(h) for h in hours],
        "message": "Working hours updated",
    }


@router.post("/reset", dependencies=[Depends(admin_rate_limit)])
async def post_reset(
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    config = reset_config(db, current_admin.id)
    logger.info(f"♻️ Salon configuration reset by {current_admin.username}")

    log_activity(
        db,
        admin_id=current_admin.id,
        action=ActionType.CONFIG_RESET,
        entity_type=EntityType.CONFIG,
        entity_id=config.id,
        description=f"Admin {current_admin.username} reset the configuration to defaults",
        request=request,
    )
    return {
        "success": True,
        "data": config_to_dict(config, get_working_hours(db)),
        "message": "Configuration reset to defaults",
    }
