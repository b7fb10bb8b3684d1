from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from .shared.validators import validate_time_string


# Auth schemas
class LoginRequest(BaseModel):
    username: str
    password: str


class ChangePasswordRequest(BaseModel):
    currentPassword: str
    newPassword: str


class AdminResponse(BaseModel):
    id: int
    username: str
    isActive: bool

    @classmethod
    def from_model(cls, admin) -> "AdminResponse":
        return cls(id=admin.id, username=admin.username, isActive=admin.is_active)


# Salon config schemas
class ConfigUpdate(BaseModel):
    slotDuration: int = Field(ge=15, le=120)
    advanceBookingDays: int = Field(ge=1, le=365)
    salonName: str = Field(min_length=1, max_length=255)
    timezone: str
    defaultServices: list[str] = []

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {v}") from None
        return v


class WorkingHoursEntry(BaseModel):
    dayOfWeek: int = Field(ge=0, le=6)
    enabled: bool
    startTime: str
    endTime: str
    breakStartTime: Optional[str] = None
    breakEndTime: Optional[str] = None

    @field_validator("startTime", "endTime", "breakStartTime", "breakEndTime")
    @classmethod
    def validate_times(cls, v):
        if v is None:
            return v
        return validate_time_string(v)


class WorkingHoursUpdate(BaseModel):
    workingHours: list[WorkingHoursEntry]
