from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base, JSONEncodedList

BOOKING_STATUSES = ("confirmed", "in_progress", "completed", "cancelled", "no_show")
BOOKING_SOURCES = ("public", "admin")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    activity_logs = relationship("AdminActivityLog", back_populates="admin")


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), unique=True, index=True, nullable=False)  # E.164, e.g. +5491123456789
    email = Column(String(255), nullable=True)
    is_regular = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="client", cascade="all, delete-orphan")


class Booking(Base):
    """
    One appointment. A (date, time) slot is represented by exactly one row for its
    whole cancel/rebook history, so the unique constraint doubles as the store-level
    guard against two concurrent reservations of the same slot.
    """

    __tablename__ = "bookings"
    __table_args__ = (UniqueConstraint("date", "time", name="uq_bookings_slot"),)

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)

    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    time = Column(String(5), nullable=False)  # HH:MM, venue-local

    # confirmed | in_progress | completed | cancelled | no_show
    status = Column(String(20), default="confirmed", nullable=False, index=True)
    service = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # One Google event id per calendar the booking was published to, in target order
    google_event_ids = Column(JSONEncodedList, nullable=False, default=list)

    # public | admin
    source = Column(String(20), default="public", nullable=False)

    # Best-effort WhatsApp confirmation: sent | failed | skipped
    notification_status = Column(String(20), nullable=True)
    notification_error = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="bookings")


class SalonConfig(Base):
    __tablename__ = "salon_config"

    id = Column(Integer, primary_key=True, index=True)
    slot_duration = Column(Integer, default=30, nullable=False)
    advance_booking_days = Column(Integer, default=30, nullable=False)
    salon_name = Column(String(255), nullable=False)
    timezone = Column(String(100), nullable=False)
    default_services = Column(JSON, default=list, nullable=False)
    updated_by_id = Column(Integer, ForeignKey("admins.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class WorkingHours(Base):
    __tablename__ = "working_hours"

    id = Column(Integer, primary_key=True, index=True)
    day_of_week = Column(Integer, unique=True, nullable=False)  # 0 = Sunday
    enabled = Column(Boolean, default=True, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    break_start_time = Column(String(5), nullable=True)
    break_end_time = Column(String(5), nullable=True)


class BlockedSlot(Base):
    """A whole day (no times) or an inclusive time range that cannot be booked."""

    __tablename__ = "blocked_slots"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(String(10), nullable=False, index=True)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AdminActivityLog(Base):
    __tablename__ = "admin_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=True, index=True)
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=False)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    admin = relationship("Admin", back_populates="activity_logs")
