"""Client domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_ar_phone


class ClientCreate(BaseModel):
    """Schema for creating a new client"""

    name: str
    phone: str
    email: Optional[str] = None
    notes: Optional[str] = None
    isRegular: bool = False

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

    @field_validator("email")
    @classmethod
    def empty_email(cls, v):
        return v or None


class ClientUpdate(BaseModel):
    """Schema for updating an existing client"""

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    isRegular: Optional[bool] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_ar_phone(v)
        return v


class ClientResponse(BaseModel):
    """Schema for client response"""

    id: int
    name: str
    phone: str
    email: Optional[str] = None
    notes: Optional[str] = None
    isRegular: bool
    totalBookings: int = 0
    lastVisit: Optional[str] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, client, total_bookings: int = 0, last_visit: Optional[str] = None) -> "ClientResponse":
        return cls(
            id=client.id,
            name=client.name,
            phone=client.phone,
            email=client.email,
            notes=client.notes,
            isRegular=client.is_regular,
            totalBookings=total_bookings,
            lastVisit=last_visit,
            createdAt=client.created_at,
        )
