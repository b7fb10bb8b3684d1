"""Client service - Business logic for client operations"""

import logging
from typing import Optional

from fastapi import HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Admin, Client
from ...services.activity_logger import ActionType, EntityType, log_activity
from ...shared.dates import venue_today
from .repository import ClientRepository
from .schemas import ClientCreate, ClientResponse, ClientUpdate

logger = logging.getLogger(__name__)


class ClientService:
    """Service layer for client business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClientRepository()

    def _with_stats(self, clients: list[Client]) -> list[ClientResponse]:
        stats = self.repo.get_booking_stats(self.db, [c.id for c in clients])
        return [ClientResponse.from_model(c, *stats.get(c.id, (0, None))) for c in clients]

    def get_clients(
        self, search: Optional[str] = None, is_regular: Optional[bool] = None, limit: int = 100
    ) -> list[ClientResponse]:
        return self._with_stats(self.repo.get_clients(self.db, search, is_regular, limit))

    def get_client(self, client_id: int) -> Client:
        client = self.repo.get_client_by_id(self.db, client_id)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    def get_client_response(self, client_id: int) -> ClientResponse:
        return self._with_stats([self.get_client(client_id)])[0]

    def resolve_or_create(self, name: str, phone: str) -> Client:
        """
        Find the client owning a (normalized) phone, creating it when unknown.
        The stored name follows the latest booking.
        """
        client = self.repo.get_client_by_phone(self.db, phone)
        if client is None:
            try:
                client = self.repo.create_client(self.db, name=name, phone=phone, is_regular=False)
                logger.info(f"👤 New client {client.id} created for {phone}")
                return client
            except IntegrityError:
                # Another request created the same phone first
                self.db.rollback()
                client = self.repo.get_client_by_phone(self.db, phone)
                if client is None:
                    raise

        if name and client.name != name:
            client = self.repo.update_client(self.db, client, name=name)
        return client

    def create_client(self, data: ClientCreate, admin: Admin, request: Optional[Request] = None) -> Client:
        if self.repo.get_client_by_phone(self.db, data.phone):
            raise HTTPException(status_code=409, detail="A client with this phone already exists")

        client = self.repo.create_client(
            self.db,
            name=data.name,
            phone=data.phone,
            email=data.email,
            notes=data.notes,
            is_regular=data.isRegular,
        )
        log_activity(
            self.db,
            admin_id=admin.id,
            action=ActionType.CLIENT_CREATE,
            entity_type=EntityType.CLIENT,
            entity_id=client.id,
            description=f"Created client {client.name}",
            new_values={"name": client.name, "phone": client.phone},
            request=request,
        )
        return client

    def update_client(
        self, client_id: int, data: ClientUpdate, admin: Admin, request: Optional[Request] = None
    ) -> Client:
        client = self.get_client(client_id)

        if data.phone and data.phone != client.phone:
            if self.repo.get_client_by_phone(self.db, data.phone):
                raise HTTPException(status_code=409, detail="A client with this phone already exists")

        old_values = {"name": client.name, "phone": client.phone, "isRegular": client.is_regular}
        client = self.repo.update_client(
            self.db,
            client,
            name=data.name,
            phone=data.phone,
            email=data.email,
            notes=data.notes,
            is_regular=data.isRegular,
        )
        log_activity(
            self.db,
            admin_id=admin.id,
            action=ActionType.CLIENT_UPDATE,
            entity_type=EntityType.CLIENT,
            entity_id=client.id,
            description=f"Updated client {client.name}",
            old_values=old_values,
            new_values=data.model_dump(exclude_none=True),
            request=request,
        )
        return client

    def delete_client(self, client_id: int, admin: Admin, request: Optional[Request] = None) -> None:
        """Delete a client and its booking history. Refused while upcoming bookings exist."""
        client = self.get_client(client_id)

        upcoming = self.repo.count_upcoming_bookings(self.db, client.id, venue_today().isoformat())
        if upcoming:
            raise HTTPException(status_code=400, detail="Cannot delete a client with active bookings")

        name = client.name
        self.repo.delete_client(self.db, client)
        log_activity(
            self.db,
            admin_id=admin.id,
            action=ActionType.CLIENT_DELETE,
            entity_type=EntityType.CLIENT,
            entity_id=client_id,
            description=f"Deleted client {name}",
            request=request,
        )
