import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["WHATSAPP_PROVIDER"] = "disabled"
os.environ["GOOGLE_CALENDAR_ID"] = ""
os.environ.pop("DEFAULT_ADMIN_PASSWORD", None)

from datetime import date, timedelta  # noqa: E402
from itertools import count  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from salon_api import models, models_google_calendar  # noqa: E402, F401
from salon_api.auth import create_admin_token  # noqa: E402
from salon_api.database import Base, get_db  # noqa: E402
from salon_api.domain.calendars.repository import CalendarRepository  # noqa: E402
from salon_api.main import create_app  # noqa: E402
from salon_api.models import Admin, Booking, Client  # noqa: E402
from salon_api.security_utils import hash_password  # noqa: E402
from salon_api.services.google_calendar_service import (  # noqa: E402
    BookingEventFields,
    CalendarEvent,
    CalendarGateway,
    DeleteResult,
    EventResult,
    ListResult,
    ProviderError,
    build_event_summary,
)
from salon_api.services.whatsapp_service import WhatsAppSender  # noqa: E402
from salon_api.shared.dates import venue_today  # noqa: E402

TODAY = date(2030, 6, 10)

ADMIN_PASSWORD = "Sup3rSecret99"


class FakeCalendarGateway(CalendarGateway):
    """
    In-process calendar provider.

    ``events`` maps calendar id -> {event id -> CalendarEvent}. Calendars listed
    in ``failing`` answer every call with a 503; ``list_failing`` only breaks
    listing and ``failing_clients`` breaks creates for those client names.
    """

    def __init__(self):
        self.events: dict[str, dict[str, CalendarEvent]] = {}
        self.failing: set[str] = set()
        self.list_failing = False
        self.failing_clients: set[str] = set()
        self.calls: list[tuple[str, str, Optional[str]]] = []
        self._ids = count(1)

    def _error(self, calendar_id: str, operation: str, status_code: int = 503, message: str = "unavailable"):
        return ProviderError(
            calendar_id=calendar_id, operation=operation, message=message, status_code=status_code
        )

    def _event(self, calendar_id: str, event_id: str, fields: BookingEventFields) -> CalendarEvent:
        return CalendarEvent(
            id=event_id,
            calendar_id=calendar_id,
            summary=build_event_summary(fields.client_name, self.event_prefix),
            start=f"{fields.date}T{fields.time}:00-03:00",
        )

    def add_foreign_event(self, calendar_id: str, summary: str, day: str, event_id: Optional[str] = None) -> str:
        event_id = event_id or f"foreign-{next(self._ids)}"
        self.events.setdefault(calendar_id, {})[event_id] = CalendarEvent(
            id=event_id, calendar_id=calendar_id, summary=summary, start=f"{day}T12:00:00-03:00"
        )
        return event_id

    def remove_event(self, reference: str) -> None:
        for calendar in self.events.values():
            calendar.pop(reference, None)

    def all_references(self) -> set[str]:
        return {ref for calendar in self.events.values() for ref in calendar}

    async def create_event(self, calendar_id, fields):
        self.calls.append(("create", calendar_id, None))
        if calendar_id in self.failing or fields.client_name in self.failing_clients:
            return EventResult(ok=False, error=self._error(calendar_id, "create"))
        event_id = f"evt-{next(self._ids)}"
        self.events.setdefault(calendar_id, {})[event_id] = self._event(calendar_id, event_id, fields)
        return EventResult(ok=True, reference=event_id)

    async def update_event(self, calendar_id, reference, fields):
        self.calls.append(("update", calendar_id, reference))
        if calendar_id in self.failing:
            return EventResult(ok=False, error=self._error(calendar_id, "update"))
        calendar = self.events.get(calendar_id, {})
        if reference not in calendar:
            return EventResult(ok=False, error=self._error(calendar_id, "update", 404, "Not Found"))
        calendar[reference] = self._event(calendar_id, reference, fields)
        return EventResult(ok=True, reference=reference)

    async def delete_event(self, calendar_id, reference):
        self.calls.append(("delete", calendar_id, reference))
        if calendar_id in self.failing:
            return DeleteResult(ok=False, error=self._error(calendar_id, "delete"))
        calendar = self.events.get(calendar_id, {})
        if reference not in calendar:
            return DeleteResult(ok=True, already_absent=True)
        del calendar[reference]
        return DeleteResult(ok=True)

    async def list_events(self, calendar_id, start_date, end_date, title_prefix=None):
        self.calls.append(("list", calendar_id, None))
        if self.list_failing or calendar_id in self.failing:
            return ListResult(ok=False, error=self._error(calendar_id, "list"))
        events = [
            event
            for event in self.events.get(calendar_id, {}).values()
            if start_date <= (event.start or "")[:10] <= end_date
            and (not title_prefix or (event.summary or "").startswith(title_prefix))
        ]
        return ListResult(ok=True, events=sorted(events, key=lambda e: e.start or ""))


def days_ahead(days: int) -> str:
    """Date relative to the real venue-local today, for route tests"""
    return (venue_today() + timedelta(days=days)).isoformat()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeCalendarGateway()


@pytest.fixture
def add_target(db):
    def _add(calendar_id: str, name: Optional[str] = None, is_primary: bool = False, is_active: bool = True):
        return CalendarRepository.create(
            db,
            name=name or calendar_id,
            calendar_id=calendar_id,
            is_active=is_active,
            is_primary=is_primary,
        )

    return _add


@pytest.fixture
def primary_target(add_target):
    return add_target("primary@salon.test", "Principal", is_primary=True)


@pytest.fixture
def make_client(db):
    phones = count(11000000)

    def _make(name: str = "Ana Pérez", phone: Optional[str] = None) -> Client:
        client = Client(name=name, phone=phone or f"+5491{next(phones)}", is_regular=False)
        db.add(client)
        db.commit()
        db.refresh(client)
        return client

    return _make


@pytest.fixture
def make_booking(db, make_client):
    def _make(day: str, time: str, references=None, status: str = "confirmed", client: Optional[Client] = None):
        booking = Booking(
            client_id=(client or make_client()).id,
            date=day,
            time=time,
            status=status,
            google_event_ids=list(references or []),
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def admin(db):
    admin = Admin(username="admin", password_hash=hash_password(ADMIN_PASSWORD), is_active=True)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


@pytest.fixture
def app(engine, session_factory, gateway):
    app = create_app(
        gateway=gateway,
        whatsapp=WhatsAppSender(provider="disabled"),
        session_factory=session_factory,
        bind=engine,
    )

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(admin):
    return {"Authorization": f"Bearer {create_admin_token(admin)}"}
