import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..auth import create_admin_token, get_current_admin
from ..config import JWT_EXPIRE_MINUTES
from ..database import get_db
from ..models import Admin
from ..rate_limiter import login_rate_limit
from ..schemas import AdminResponse, ChangePasswordRequest, LoginRequest
from ..security_utils import check_password_strength, hash_password, verify_password
from ..services.activity_logger import ActionType, EntityType, log_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", dependencies=[Depends(login_rate_limit)])
async def login(data: LoginRequest, request: Request, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.username == data.username).first()
    if not admin or not admin.is_active or not verify_password(data.password, admin.password_hash):
        logger.warning(f"🔒 Failed login for '{data.username}'")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    admin.last_login_at = datetime.utcnow()
    db.commit()
    token = create_admin_token(admin)

    log_activity(
        db,
        admin_id=admin.id,
        action=ActionType.LOGIN,
        entity_type=EntityType.ADMIN,
        entity_id=admin.id,
        description=f"Admin {admin.username} logged in",
        request=request,
    )
    logger.info(f"🔑 Admin {admin.username} logged in")

    return {
        "success": True,
        "data": {
            "token": token,
            "expiresIn": JWT_EXPIRE_MINUTES * 60,
            "admin": AdminResponse.from_model(admin),
        },
        "message": "Login successful",
    }


@router.get("/me")
async def me(current_admin: Admin = Depends(get_current_admin)):
    return {"success": True, "data": AdminResponse.from_model(current_admin)}


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not verify_password(data.currentPassword, current_admin.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    strength = check_password_strength(data.newPassword)
    if not strength["is_valid"]:
        raise HTTPException(status_code=400, detail="; ".join(strength["feedback"]))

    current_admin.password_hash = hash_password(data.newPassword)
    db.commit()

    log_activity(
        db,
        admin_id=current_admin.id,
        action=ActionType.PASSWORD_CHANGE,
        entity_type=EntityType.ADMIN,
        entity_id=current_admin.id,
        description=f"Admin {current_admin.username} changed their password",
        request=request,
    )
    return {"success": True, "message": "Password updated"}
