"""Calendar target schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class CalendarTarget(BaseModel):
    """Detached snapshot of an active target, handed to the write fan-out"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    calendar_id: str
    is_primary: bool = False


class CalendarCreate(BaseModel):
    name: str
    calendarId: str
    email: Optional[str] = None
    description: Optional[str] = None
    colorId: Optional[str] = None
    isPrimary: bool = False

    @field_validator("name", "calendarId")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Field is required")
        return v.strip()


class CalendarUpdate(BaseModel):
    name: Optional[str] = None
    calendarId: Optional[str] = None
    email: Optional[str] = None
    description: Optional[str] = None
    colorId: Optional[str] = None
    isActive: Optional[bool] = None
    isPrimary: Optional[bool] = None


class CalendarResponse(BaseModel):
    id: int
    name: str
    calendarId: str
    email: Optional[str] = None
    description: Optional[str] = None
    colorId: Optional[str] = None
    isActive: bool
    isPrimary: bool
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, calendar) -> "CalendarResponse":
        return cls(
            id=calendar.id,
            name=calendar.name,
            calendarId=calendar.calendar_id,
            email=calendar.email,
            description=calendar.description,
            colorId=calendar.color_id,
            isActive=calendar.is_active,
            isPrimary=calendar.is_primary,
            createdAt=calendar.created_at,
            updatedAt=calendar.updated_at,
        )
