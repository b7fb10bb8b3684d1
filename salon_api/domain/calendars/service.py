"""Calendar target service - Which Google calendars bookings are mirrored to"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from ...config import GOOGLE_CALENDAR_ID
from ...models import Admin
from ...models_google_calendar import GoogleCalendar
from ...services.activity_logger import ActionType, EntityType, log_activity
from .repository import CalendarRepository
from .schemas import CalendarCreate, CalendarTarget, CalendarUpdate

logger = logging.getLogger(__name__)

DEFAULT_TARGET_NAME = "Calendario principal"


def get_active_targets(db: Session) -> list[CalendarTarget]:
    """Active targets read fresh from the database, primary first"""
    return [CalendarTarget.model_validate(c) for c in CalendarRepository.list_active(db)]


def get_primary_target(db: Session) -> Optional[CalendarTarget]:
    targets = get_active_targets(db)
    for target in targets:
        if target.is_primary:
            return target
    return targets[0] if targets else None


def ensure_default_target(db: Session, calendar_id: Optional[str] = GOOGLE_CALENDAR_ID) -> Optional[GoogleCalendar]:
    """Seed a primary target from GOOGLE_CALENDAR_ID when none is configured"""
    if not calendar_id or CalendarRepository.count(db) > 0:
        return None
    calendar = CalendarRepository.create(
        db,
        name=DEFAULT_TARGET_NAME,
        calendar_id=calendar_id,
        is_active=True,
        is_primary=True,
    )
    logger.info(f"📅 Seeded default calendar target: {calendar_id}")
    return calendar


class CalendarService:
    """Service layer for calendar target management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    def list_calendars(self) -> list[GoogleCalendar]:
        return self.repo.list_all(self.db)

    def list_active(self) -> list[GoogleCalendar]:
        return self.repo.list_active(self.db)

    def get_calendar(self, target_id: int) -> GoogleCalendar:
        calendar = self.repo.get_by_id(self.db, target_id)
        if not calendar:
            raise HTTPException(status_code=404, detail="Calendar not found")
        return calendar

    def create_calendar(
        self, data: CalendarCreate, admin: Admin, request: Optional[Request] = None
    ) -> GoogleCalendar:
        if self.repo.get_by_calendar_id(self.db, data.calendarId):
            raise HTTPException(status_code=409, detail="This calendar is already configured")

        # First target is always primary
        is_primary = self.repo.count(self.db) == 0 or data.isPrimary
        if is_primary:
            self.repo.clear_primary(self.db)

        calendar = self.repo.create(
            self.db,
            name=data.name,
            calendar_id=data.calendarId,
            email=data.email,
            description=data.description,
            color_id=data.colorId,
            is_active=True,
            is_primary=is_primary,
            updated_by_id=admin.id,
        )
        logger.info(f"✅ Calendar target created: {calendar.calendar_id} (primary={is_primary})")

        log_activity(
            self.db,
            admin_id=admin.id,
            action=ActionType.CALENDAR_CREATE,
            entity_type=EntityType.CALENDAR,
            entity_id=calendar.id,
            description=f"Added calendar {calendar.name}",
            new_values={"calendarId": calendar.calendar_id, "isPrimary": is_primary},
            request=request,
        )
        return calendar

    def update_calendar(
        self, target_id: int, data: CalendarUpdate, admin: Admin, request: Optional[Request] = None
    ) -> GoogleCalendar:
        calendar = self.get_calendar(target_id)

        if data.calendarId and data.calendarId != calendar.calendar_id:
            if self.repo.get_by_calendar_id(self.db, data.calendarId):
                raise HTTPException(status_code=409, detail="A calendar with this ID already exists")

        will_be_active = calendar.is_active if data.isActive is None else data.isActive
        if data.isPrimary and not will_be_active:
            raise HTTPException(status_code=400, detail="Only an active calendar can be primary")

        old_values = {
            "calendarId": calendar.calendar_id,
            "isActive": calendar.is_active,
            "isPrimary": calendar.is_primary,
        }

        if data.isPrimary:
            self.repo.clear_primary(self.db, except_id=calendar.id)

        promoted = None
        if calendar.is_primary and not will_be_active:
            # A deactivated primary hands the role to the next active target
            calendar.is_primary = False
            candidates = [c for c in self.repo.list_active(self.db) if c.id != calendar.id]
            if candidates:
                promoted = candidates[0]
                promoted.is_primary = True

        calendar = self.repo.update(
            self.db,
            calendar,
            name=data.name,
            calendar_id=data.calendarId,
            email=data.email,
            description=data.description,
            color_id=data.colorId,
            is_active=data.isActive,
            is_primary=data.isPrimary,
            updated_by_id=admin.id,
        )
        if promoted:
            logger.info(f"⭐ Promoted calendar {promoted.calendar_id} to primary")

        log_activity(
            self.db,
            admin_id=admin.id,
            action=ActionType.CALENDAR_UPDATE,
            entity_type=EntityType.CALENDAR,
            entity_id=calendar.id,
            description=f"Updated calendar {calendar.name}",
            old_values=old_values,
            new_values=data.model_dump(exclude_none=True),
            request=request,
        )
        return calendar

    def delete_calendar(self, target_id: int, admin: Admin, request: Optional[Request] = None) -> Optional[GoogleCalendar]:
        """
        Remove a target. Removing the primary promotes the first remaining active
        target. Returns the promoted target, if any.
        """
        calendar = self.get_calendar(target_id)
        promoted = None

        if calendar.is_primary:
            candidates = [c for c in self.repo.list_active(self.db) if c.id != calendar.id]
            if candidates:
                promoted = candidates[0]
                promoted.is_primary = True

        name = calendar.name
        self.repo.delete(self.db, calendar)
        if promoted:
            logger.info(f"⭐ Promoted calendar {promoted.calendar_id} to primary")

        log_activity(
            self.db,
            admin_id=admin.id,
            action=ActionType.CALENDAR_DELETE,
            entity_type=EntityType.CALENDAR,
            entity_id=target_id,
            description=f"Removed calendar {name}",
            request=request,
        )
        return promoted

    def set_primary(self, target_id: int, admin: Admin, request: Optional[Request] = None) -> GoogleCalendar:
        calendar = self.get_calendar(target_id)
        if not calendar.is_active:
            raise HTTPException(status_code=400, detail="Only an active calendar can be primary")

        self.repo.clear_primary(self.db, except_id=calendar.id)
        calendar = self.repo.update(self.db, calendar, is_primary=True, updated_by_id=admin.id)

        log_activity(
            self.db,
            admin_id=admin.id,
            action=ActionType.CALENDAR_UPDATE,
            entity_type=EntityType.CALENDAR,
            entity_id=calendar.id,
            description=f"Set {calendar.name} as primary calendar",
            request=request,
        )
        return calendar
