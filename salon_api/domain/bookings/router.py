"""Booking router - FastAPI endpoints for booking operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_optional_admin
from ...database import get_db
from ...dependencies import get_calendar_gateway, get_whatsapp_sender
from ...models import Admin
from ...rate_limiter import admin_rate_limit, booking_rate_limit
from ...services.google_calendar_service import CalendarGateway
from ...services.whatsapp_service import WhatsAppSender
from .schemas import BookingCreate, BookingResponse, BookingUpdate
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(
    db: Session = Depends(get_db),
    gateway: CalendarGateway = Depends(get_calendar_gateway),
    notifier: Optional[WhatsAppSender] = Depends(get_whatsapp_sender),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, gateway, notifier)


def _message(base: str, warnings: list[str]) -> str:
    if warnings:
        return f"{base}, but calendar sync had problems"
    return base


@router.get("", dependencies=[Depends(admin_rate_limit)])
async def list_bookings(
    date: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    clientId: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_admin: Admin = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings ordered by date and time, newest first"""
    bookings = service.list_bookings(date, status.lower() if status else None, limit, client_id=clientId)
    return {
        "success": True,
        "data": [BookingResponse.from_model(b) for b in bookings],
        "count": len(bookings),
    }


@router.get("/{booking_id}", dependencies=[Depends(admin_rate_limit)])
async def get_booking(
    booking_id: int,
    current_admin: Admin = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    return {"success": True, "data": BookingResponse.from_model(service.get_booking(booking_id))}


@router.post("", status_code=201, dependencies=[Depends(booking_rate_limit)])
async def create_booking(
    data: BookingCreate,
    request: Request,
    admin: Optional[Admin] = Depends(get_optional_admin),
    service: BookingService = Depends(get_booking_service),
):
    """
    Public booking endpoint. Returns 409 when the slot is taken and 400 for past or
    too-far dates. Calendar failures only show up in calendarWarnings.
    """
    booking, warnings = await service.create_booking(data, admin, request)
    return {
        "success": True,
        "data": BookingResponse.from_model(booking, warnings),
        "message": _message("Booking created", warnings),
    }


@router.put("/{booking_id}", dependencies=[Depends(admin_rate_limit)])
async def update_booking(
    booking_id: int,
    data: BookingUpdate,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    booking, warnings = await service.update_booking(booking_id, data, current_admin, request)
    return {
        "success": True,
        "data": BookingResponse.from_model(booking, warnings),
        "message": _message("Booking updated", warnings),
    }


@router.delete("/{booking_id}", dependencies=[Depends(admin_rate_limit)])
async def delete_booking(
    booking_id: int,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    warnings = await service.delete_booking(booking_id, current_admin, request)
    return {
        "success": True,
        "calendarWarnings": warnings,
        "message": _message("Booking deleted", warnings),
    }
