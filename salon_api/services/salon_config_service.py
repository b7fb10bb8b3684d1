"""
Salon configuration
Singleton config row and the weekly working-hours table, seeded with defaults on first read.
"""
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..config import SALON_NAME, VENUE_TIMEZONE
from ..models import SalonConfig, WorkingHours

logger = logging.getLogger(__name__)

DEFAULT_SLOT_DURATION = 30
DEFAULT_ADVANCE_BOOKING_DAYS = 30
DEFAULT_SERVICES = [
    "Corte de Cabello",
    "Lavado y Peinado",
    "Corte + Lavado",
    "Barba",
    "Corte + Barba",
    "Tratamiento Capilar",
]

# day_of_week: 0 = Sunday
DEFAULT_WORKING_HOURS = [
    {"day_of_week": 0, "enabled": False, "start_time": "09:00", "end_time": "18:00"},
    {"day_of_week": 1, "enabled": False, "start_time": "09:00", "end_time": "18:00"},
    {"day_of_week": 2, "enabled": True, "start_time": "09:30", "end_time": "20:00"},
    {"day_of_week": 3, "enabled": True, "start_time": "09:30", "end_time": "20:00"},
    {"day_of_week": 4, "enabled": True, "start_time": "09:30", "end_time": "20:00"},
    {"day_of_week": 5, "enabled": True, "start_time": "09:30", "end_time": "20:00"},
    {"day_of_week": 6, "enabled": True, "start_time": "10:00", "end_time": "19:00"},
]


def _default_config_values() -> dict[str, Any]:
    return {
        "slot_duration": DEFAULT_SLOT_DURATION,
        "advance_booking_days": DEFAULT_ADVANCE_BOOKING_DAYS,
        "salon_name": SALON_NAME,
        "timezone": VENUE_TIMEZONE,
        "default_services": list(DEFAULT_SERVICES),
    }


def get_or_create_config(db: Session) -> SalonConfig:
    config = db.query(SalonConfig).order_by(SalonConfig.id).first()
    if config is None:
        config = SalonConfig(**_default_config_values())
        db.add(config)
        db.commit()
        db.refresh(config)
        logger.info("⚙️ Default salon configuration created")
    return config


def get_working_hours(db: Session) -> list[WorkingHours]:
    hours = db.query(WorkingHours).order_by(WorkingHours.day_of_week).all()
    if not hours:
        for values in DEFAULT_WORKING_HOURS:
            db.add(WorkingHours(**values))
        db.commit()
        hours = db.query(WorkingHours).order_by(WorkingHours.day_of_week).all()
    return hours


def get_advance_booking_days(db: Session) -> int:
    return get_or_create_config(db).advance_booking_days


def update_config(db: Session, admin_id: Optional[int], **values) -> SalonConfig:
    config = get_or_create_config(db)
    for key, value in values.items():
        if value is not None:
            setattr(config, key, list(value) if key == "default_services" else value)
    config.updated_by_id = admin_id
    db.commit()
    db.refresh(config)
    return config


def replace_working_hours(db: Session, hours: list[dict[str, Any]]) -> list[WorkingHours]:
    """Upsert one row per day_of_week"""
    existing = {h.day_of_week: h for h in db.query(WorkingHours).all()}
    for values in hours:
        row = existing.get(values["day_of_week"])
        if row is None:
            db.add(WorkingHours(**values))
        else:
            for key, value in values.items():
                setattr(row, key, value)
    db.commit()
    return db.query(WorkingHours).order_by(WorkingHours.day_of_week).all()


def reset_config(db: Session, admin_id: Optional[int]) -> SalonConfig:
    config = update_config(db, admin_id, **_default_config_values())
    db.query(WorkingHours).delete(synchronize_session=False)
    db.commit()
    get_working_hours(db)
    return config


def config_to_dict(config: SalonConfig, hours: list[WorkingHours]) -> dict[str, Any]:
    return {
        "id": config.id,
        "slotDuration": config.slot_duration,
        "advanceBookingDays": config.advance_booking_days,
        "salonName": config.salon_name,
        "timezone": config.timezone,
        "defaultServices": config.default_services or [],
        "workingHours": [working_hours_to_dict(h) for h in hours],
        "createdAt": config.created_at,
        "updatedAt": config.updated_at,
    }


def working_hours_to_dict(hours: WorkingHours) -> dict[str, Any]:
    return {
        "dayOfWeek": hours.day_of_week,
        "enabled": hours.enabled,
        "startTime": hours.start_time,
        "endTime": hours.end_time,
        "breakStartTime": hours.break_start_time,
        "breakEndTime": hours.break_end_time,
    }
