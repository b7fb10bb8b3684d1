"""Client router - FastAPI endpoints for client operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import Admin
from ...rate_limiter import admin_rate_limit
from .schemas import ClientCreate, ClientResponse, ClientUpdate
from .service import ClientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["Clients"], dependencies=[Depends(admin_rate_limit)])


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    """Dependency injection for ClientService"""
    return ClientService(db)


@router.get("")
async def get_clients(
    search: Optional[str] = Query(None),
    regular: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_admin: Admin = Depends(get_current_admin),
    service: ClientService = Depends(get_client_service),
):
    """List clients, newest first, with booking totals"""
    clients = service.get_clients(search, regular, limit)
    return {"success": True, "data": clients, "count": len(clients)}


@router.get("/{client_id}")
async def get_client(
    client_id: int,
    current_admin: Admin = Depends(get_current_admin),
    service: ClientService = Depends(get_client_service),
):
    return {"success": True, "data": service.get_client_response(client_id)}


@router.post("", status_code=201)
async def create_client(
    data: ClientCreate,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: ClientService = Depends(get_client_service),
):
    client = service.create_client(data, current_admin, request)
    return {
        "success": True,
        "data": ClientResponse.from_model(client),
        "message": "Client created",
    }


@router.put("/{client_id}")
async def update_client(
    client_id: int,
    data: ClientUpdate,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: ClientService = Depends(get_client_service),
):
    service.update_client(client_id, data, current_admin, request)
    return {
        "success": True,
        "data": service.get_client_response(client_id),
        "message": "Client updated",
    }


@router.delete("/{client_id}")
async def delete_client(
    client_id: int,
    request: Request,
    current_admin: Admin = Depends(get_current_admin),
    service: ClientService = Depends(get_client_service),
):
    service.delete_client(client_id, current_admin, request)
    return {"success": True, "message": "Client deleted"}
