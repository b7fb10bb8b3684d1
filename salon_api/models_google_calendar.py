"""
Google Calendar target models
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base


class GoogleCalendar(Base):
    """A calendar bookings are mirrored to. Exactly one target should be primary."""

    __tablename__ = "google_calendars"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    calendar_id = Column(String(500), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    color_id = Column(String(20), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)

    updated_by_id = Column(Integer, ForeignKey("admins.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
