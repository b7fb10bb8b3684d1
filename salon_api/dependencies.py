"""
Process-wide collaborators built in the application lifespan and stored on app.state.
Routes receive them through these dependencies; tests override them.
"""
from typing import Optional

from fastapi import HTTPException, Request

from .services.google_calendar_service import CalendarGateway
from .services.sync_scheduler import SyncJob
from .services.whatsapp_service import WhatsAppSender


def get_calendar_gateway(request: Request) -> CalendarGateway:
    gateway = getattr(request.app.state, "calendar_gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Calendar gateway not initialized")
    return gateway


def get_whatsapp_sender(request: Request) -> Optional[WhatsAppSender]:
    return getattr(request.app.state, "whatsapp_sender", None)


def get_sync_job(request: Request) -> SyncJob:
    job = getattr(request.app.state, "sync_job", None)
    if job is None:
        raise HTTPException(status_code=503, detail="Sync job not initialized")
    return job
