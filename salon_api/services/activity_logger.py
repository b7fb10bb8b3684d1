"""
Admin activity log
Append-only audit trail. Writing a log entry never interrupts the operation being logged.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..models import AdminActivityLog

logger = logging.getLogger(__name__)


class ActionType:
    LOGIN = "LOGIN"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"

    BOOKING_CREATE = "BOOKING_CREATE"
    BOOKING_UPDATE = "BOOKING_UPDATE"
    BOOKING_DELETE = "BOOKING_DELETE"
    BOOKING_STATUS_CHANGE = "BOOKING_STATUS_CHANGE"

    CLIENT_CREATE = "CLIENT_CREATE"
    CLIENT_UPDATE = "CLIENT_UPDATE"
    CLIENT_DELETE = "CLIENT_DELETE"

    CONFIG_UPDATE = "CONFIG_UPDATE"
    CONFIG_RESET = "CONFIG_RESET"
    WORKING_HOURS_UPDATE = "WORKING_HOURS_UPDATE"

    CALENDAR_CREATE = "CALENDAR_CREATE"
    CALENDAR_UPDATE = "CALENDAR_UPDATE"
    CALENDAR_DELETE = "CALENDAR_DELETE"

    SYNC_REPAIR = "SYNC_REPAIR"


class EntityType:
    BOOKING = "booking"
    CLIENT = "client"
    CONFIG = "config"
    WORKING_HOURS = "working_hours"
    CALENDAR = "calendar"
    ADMIN = "admin"


def _request_metadata(request: Optional[Request]) -> tuple[Optional[str], Optional[str]]:
    if request is None:
        return None, None
    ip_address = request.client.host if request.client else None
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    user_agent = request.headers.get("User-Agent")
    return ip_address, user_agent[:500] if user_agent else None


def log_activity(
    db: Session,
    *,
    admin_id: Optional[int],
    action: str,
    entity_type: str,
    description: str,
    entity_id: Optional[int] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> None:
    """Record an admin action. Failures are logged and swallowed."""
    try:
        ip_address, user_agent = _request_metadata(request)
        db.add(
            AdminActivityLog(
                admin_id=admin_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
                old_values=old_values,
                new_values=new_values,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error logging activity {action}: {e}")


def get_activity_logs(
    db: Session,
    *,
    admin_id: Optional[int] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AdminActivityLog], int]:
    """Paged activity logs, newest first. Returns (logs, total)"""
    query = db.query(AdminActivityLog)
    if admin_id:
        query = query.filter(AdminActivityLog.admin_id == admin_id)
    if action:
        query = query.filter(AdminActivityLog.action == action)
    if entity_type:
        query = query.filter(AdminActivityLog.entity_type == entity_type)
    if start_date:
        query = query.filter(AdminActivityLog.created_at >= start_date)
    if end_date:
        query = query.filter(AdminActivityLog.created_at <= end_date)

    total = query.count()
    logs = (
        query.options(joinedload(AdminActivityLog.admin))
        .order_by(AdminActivityLog.created_at.desc(), AdminActivityLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return logs, total


def get_activity_stats(db: Session, admin_id: Optional[int] = None) -> dict[str, int]:
    """Count of log entries per action"""
    query = db.query(AdminActivityLog.action, func.count(AdminActivityLog.id))
    if admin_id:
        query = query.filter(AdminActivityLog.admin_id == admin_id)
    return {action: count for action, count in query.group_by(AdminActivityLog.action).all()}
