import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import DEFAULT_ADMIN_PASSWORD, DEFAULT_ADMIN_USERNAME
from .database import get_db
from .models import Admin
from .security_utils import create_jwt_token, hash_password, verify_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_admin_token(admin: Admin) -> str:
    return create_jwt_token({"sub": str(admin.id), "username": admin.username})


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Admin:
    """Get current admin from the Bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    payload = verify_jwt_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        admin_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject") from None

    admin = db.query(Admin).filter(Admin.id == admin_id).first()
    if not admin or not admin.is_active:
        logger.warning(f"⚠️ Token for unknown or inactive admin {admin_id}")
        raise HTTPException(status_code=401, detail="Admin not found or inactive")

    return admin


def ensure_default_admin(db: Session) -> Optional[Admin]:
    """Create the configured admin account when no admin exists yet"""
    if db.query(Admin).count() > 0:
        return None
    if not DEFAULT_ADMIN_PASSWORD:
        logger.warning("⚠️ No admin account exists and DEFAULT_ADMIN_PASSWORD is not set")
        return None

    admin = Admin(
        username=DEFAULT_ADMIN_USERNAME,
        password_hash=hash_password(DEFAULT_ADMIN_PASSWORD),
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info(f"👤 Default admin '{admin.username}' created")
    return admin


async def get_optional_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[Admin]:
    """Admin behind the Bearer token if one is sent, otherwise None (public callers)"""
    if not credentials:
        return None
    payload = verify_jwt_token(credentials.credentials)
    if not payload or not str(payload.get("sub", "")).isdigit():
        return None
    admin = db.query(Admin).filter(Admin.id == int(payload["sub"])).first()
    return admin if admin and admin.is_active else None
