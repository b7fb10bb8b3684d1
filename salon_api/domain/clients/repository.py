"""Client repository - Database operations for clients"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Booking, Client


class ClientRepository:
    """Repository for client database operations"""

    @staticmethod
    def get_clients(
        db: Session,
        search: Optional[str] = None,
        is_regular: Optional[bool] = None,
        limit: int = 100,
    ) -> list[Client]:
        query = db.query(Client)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Client.name.ilike(pattern), Client.phone.like(pattern)))
        if is_regular is not None:
            query = query.filter(Client.is_regular.is_(is_regular))
        return query.order_by(Client.created_at.desc(), Client.id.desc()).limit(limit).all()

    @staticmethod
    def get_client_by_id(db: Session, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_client_by_phone(db: Session, phone: str) -> Optional[Client]:
        return db.query(Client).filter(Client.phone == phone).first()

    @staticmethod
    def get_booking_stats(db: Session, client_ids: list[int]) -> dict[int, tuple[int, Optional[str]]]:
        """Map client id -> (total bookings, most recent booking date)"""
        if not client_ids:
            return {}
        rows = (
            db.query(Booking.client_id, func.count(Booking.id), func.max(Booking.date))
            .filter(Booking.client_id.in_(client_ids))
            .group_by(Booking.client_id)
            .all()
        )
        return {client_id: (total, last_date) for client_id, total, last_date in rows}

    @staticmethod
    def count_upcoming_bookings(db: Session, client_id: int, from_date: str) -> int:
        return (
            db.query(Booking)
            .filter(
                Booking.client_id == client_id,
                Booking.status == "confirmed",
                Booking.date >= from_date,
            )
            .count()
        )

    @staticmethod
    def create_client(db: Session, **client_data) -> Client:
        client = Client(**client_data)
        db.add(client)
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def update_client(db: Session, client: Client, **updates) -> Client:
        """Update a client with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(client, key):
                setattr(client, key, value)
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def delete_client(db: Session, client: Client) -> None:
        db.delete(client)
        db.commit()
