"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import BOOKING_STATUSES
from ...shared.validators import validate_ar_phone, validate_date_string, validate_time_string


class BookingCreate(BaseModel):
    """Public booking form"""

    name: str
    phone: str
    date: str
    time: str
    service: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or len(v.strip()) < 2:
            raise ValueError("Name must have at least 2 characters")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if not v:
            raise ValueError("Phone number is required")
        return validate_ar_phone(v)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return validate_date_string(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return validate_time_string(v)


class BookingUpdate(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    status: Optional[str] = None
    service: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return validate_date_string(v) if v else v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return validate_time_string(v) if v else v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is None:
            return v
        status = v.strip().lower()
        if status not in BOOKING_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(BOOKING_STATUSES)}")
        return status

    @property
    def changes_event(self) -> bool:
        return any(value is not None for value in (self.date, self.time, self.service, self.notes))


class BookingClient(BaseModel):
    id: int
    name: str
    phone: str
    isRegular: bool


class BookingResponse(BaseModel):
    id: int
    date: str
    time: str
    status: str
    service: Optional[str] = None
    notes: Optional[str] = None
    source: str
    googleEventId: Optional[str] = None
    googleEventIds: list[str] = []
    notificationStatus: Optional[str] = None
    client: Optional[BookingClient] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    calendarWarnings: list[str] = []

    @classmethod
    def from_model(cls, booking, warnings: Optional[list[str]] = None) -> "BookingResponse":
        references = list(booking.google_event_ids or [])
        client = booking.client
        return cls(
            id=booking.id,
            date=booking.date,
            time=booking.time,
            status=booking.status,
            service=booking.service,
            notes=booking.notes,
            source=booking.source,
            googleEventId=references[0] if references else None,
            googleEventIds=references,
            notificationStatus=booking.notification_status,
            client=BookingClient(
                id=client.id, name=client.name, phone=client.phone, isRegular=client.is_regular
            )
            if client
            else None,
            createdAt=booking.created_at,
            updatedAt=booking.updated_at,
            calendarWarnings=warnings or [],
        )
