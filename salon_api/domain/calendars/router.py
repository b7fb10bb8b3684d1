"""Calendar target router - manage the Google calendars bookings are published to"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import Admin
from ...rate_limiter import admin_rate_limit
from .schemas import CalendarCreate, CalendarResponse, CalendarUpdate
from .service import CalendarService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendars", tags=["Calendars"], dependencies=[Depends(admin_rate_limit)])


def get_calendar_service(db: Session = Depends(get_db)) -> CalendarService:
    return CalendarService(db)


@router.get("")
async def list_calendars(
    current_admin: Admin = Depends(get_current_admin),
    service: CalendarService = Depends(get_calendar_service),
):
    calendars = service.list_calendars()
    return {
        "success": True,
        "data": [CalendarResponse.from_model(c) for c in calendars],
        "count": len(calendars),
    }


@router.get("/active")
async def list_active_calendars(
    current_admin: Admin = Depends(get_current_admin),
    service: CalendarService = Depends(get_calendar_service),
):
    """Active targets, primary first"""
    calendars = service.list_active()
    return {
        "success": True,
        "data": [CalendarResponse.from_model(c) for c in calendars],
        "count": len(calendars),
    }


@router.post("", status_code=201)
async def create_calendar(
    data: CalendarCreate,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: CalendarService = Depends(get_calendar_service),
):
    calendar = service.create_calendar(data, current_admin, request)
    return {
        "success": True,
        "data": CalendarResponse.from_model(calendar),
        "message": "Calendar added",
    }


@router.put("/{target_id}")
async def update_calendar(
    target_id: int,
    data: CalendarUpdate,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: CalendarService = Depends(get_calendar_service),
):
    calendar = service.update_calendar(target_id, data, current_admin, request)
    return {
        "success": True,
        "data": CalendarResponse.from_model(calendar),
        "message": "Calendar updated",
    }


@router.delete("/{target_id}")
async def delete_calendar(
    target_id: int,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: CalendarService = Depends(get_calendar_service),
):
    promoted = service.delete_calendar(target_id, current_admin, request)
    return {
        "success": True,
        "promoted": CalendarResponse.from_model(promoted) if promoted else None,
        "message": "Calendar removed",
    }


@router.post("/{target_id}/set-primary")
async def set_primary_calendar(
    target_id: int,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: CalendarService = Depends(get_calendar_service),
):
    calendar = service.set_primary(target_id, current_admin, request)
    return {
        "success": True,
        "data": CalendarResponse.from_model(calendar),
        "message": f"{calendar.name} is now the primary calendar",
    }
