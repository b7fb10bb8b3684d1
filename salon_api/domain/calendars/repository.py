"""Calendar target repository - Database operations for google_calendars"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_google_calendar import GoogleCalendar


class CalendarRepository:
    """Repository for calendar target database operations"""

    @staticmethod
    def list_all(db: Session) -> list[GoogleCalendar]:
        return (
            db.query(GoogleCalendar)
            .order_by(GoogleCalendar.is_primary.desc(), GoogleCalendar.name.asc())
            .all()
        )

    @staticmethod
    def list_active(db: Session) -> list[GoogleCalendar]:
        """Active targets, primary first"""
        return (
            db.query(GoogleCalendar)
            .filter(GoogleCalendar.is_active.is_(True))
            .order_by(GoogleCalendar.is_primary.desc(), GoogleCalendar.name.asc())
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, target_id: int) -> Optional[GoogleCalendar]:
        return db.query(GoogleCalendar).filter(GoogleCalendar.id == target_id).first()

    @staticmethod
    def get_by_calendar_id(db: Session, calendar_id: str) -> Optional[GoogleCalendar]:
        return db.query(GoogleCalendar).filter(GoogleCalendar.calendar_id == calendar_id).first()

    @staticmethod
    def count(db: Session) -> int:
        return db.query(GoogleCalendar).count()

    @staticmethod
    def clear_primary(db: Session, except_id: Optional[int] = None) -> None:
        query = db.query(GoogleCalendar).filter(GoogleCalendar.is_primary.is_(True))
        if except_id is not None:
            query = query.filter(GoogleCalendar.id != except_id)
        query.update({GoogleCalendar.is_primary: False}, synchronize_session=False)

    @staticmethod
    def create(db: Session, **values) -> GoogleCalendar:
        calendar = GoogleCalendar(**values)
        db.add(calendar)
        db.commit()
        db.refresh(calendar)
        return calendar

    @staticmethod
    def update(db: Session, calendar: GoogleCalendar, **updates) -> GoogleCalendar:
        for key, value in updates.items():
            if value is not None and hasattr(calendar, key):
                setattr(calendar, key, value)
        db.commit()
        db.refresh(calendar)
        return calendar

    @staticmethod
    def delete(db: Session, calendar: GoogleCalendar) -> None:
        db.delete(calendar)
        db.commit()
