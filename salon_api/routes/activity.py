import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_admin
from ..database import get_db
from ..models import Admin
from ..rate_limiter import admin_rate_limit
from ..services.activity_logger import get_activity_logs, get_activity_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity", tags=["Activity"], dependencies=[Depends(admin_rate_limit)])


def _log_to_dict(log) -> dict:
    return {
        "id": log.id,
        "adminId": log.admin_id,
        "adminUsername": log.admin.username if log.admin else None,
        "action": log.action,
        "entityType": log.entity_type,
        "entityId": log.entity_id,
        "description": log.description,
        "oldValues": log.old_values,
        "newValues": log.new_values,
        "ipAddress": log.ip_address,
        "createdAt": log.created_at,
    }


@router.get("")
async def list_activity(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    adminId: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    entityType: Optional[str] = Query(None),
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    logs, total = get_activity_logs(
        db,
        admin_id=adminId,
        action=action,
        entity_type=entityType,
        start_date=startDate,
        end_date=endDate,
        page=page,
        limit=limit,
    )
    return {
        "success": True,
        "data": [_log_to_dict(log) for log in logs],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.get("/stats")
async def activity_stats(
    adminId: Optional[int] = Query(None),
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Number of logged actions per action type"""
    return {"success": True, "data": get_activity_stats(db, adminId)}
