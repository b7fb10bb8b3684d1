"""
Google Calendar Service
Thin gateway over the Calendar v3 events API. Every call returns a typed result;
HTTP failures, timeouts and auth problems never propagate as exceptions.
"""
import abc
import asyncio
import logging
from datetime import date as date_cls
from datetime import datetime, time as time_cls, timedelta
from typing import Any, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx
from pydantic import BaseModel

from ..config import (
    CALENDAR_EVENT_PREFIX,
    DEFAULT_EVENT_DURATION,
    GOOGLE_ACCESS_TOKEN,
    GOOGLE_API_TIMEOUT,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REFRESH_TOKEN,
    REMINDER_EMAIL_MINUTES,
    REMINDER_POPUP_MINUTES,
    VENUE_TIMEZONE,
)

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
NOT_FOUND_STATUS_CODES = (404, 410)
LIST_PAGE_SIZE = 250


class BookingEventFields(BaseModel):
    """Booking data needed to render a calendar event"""

    client_name: str
    client_phone: str
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    service: Optional[str] = None
    notes: Optional[str] = None
    duration_minutes: int = DEFAULT_EVENT_DURATION

    @classmethod
    def from_booking(cls, booking, duration_minutes: int = DEFAULT_EVENT_DURATION) -> "BookingEventFields":
        """Rebuild event fields from the stored booking and its client"""
        return cls(
            client_name=booking.client.name,
            client_phone=booking.client.phone,
            date=booking.date,
            time=booking.time,
            service=booking.service,
            notes=booking.notes,
            duration_minutes=duration_minutes,
        )


class ProviderError(BaseModel):
    calendar_id: str
    operation: str
    message: str
    status_code: Optional[int] = None

    @property
    def not_found(self) -> bool:
        return self.status_code in NOT_FOUND_STATUS_CODES

    def __str__(self) -> str:
        code = f" [{self.status_code}]" if self.status_code else ""
        return f"{self.operation} on {self.calendar_id} failed{code}: {self.message}"


class CalendarEvent(BaseModel):
    id: str
    calendar_id: str
    summary: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    html_link: Optional[str] = None


class EventResult(BaseModel):
    """Outcome of a create/update. ``reference`` may differ from the id that was updated."""

    ok: bool
    reference: Optional[str] = None
    html_link: Optional[str] = None
    error: Optional[ProviderError] = None


class DeleteResult(BaseModel):
    ok: bool
    already_absent: bool = False
    error: Optional[ProviderError] = None


class ListResult(BaseModel):
    ok: bool
    events: list[CalendarEvent] = []
    error: Optional[ProviderError] = None


class CalendarGateway(abc.ABC):
    """Uniform interface over a calendar provider."""

    event_prefix: str = CALENDAR_EVENT_PREFIX

    @abc.abstractmethod
    async def create_event(self, calendar_id: str, fields: BookingEventFields) -> EventResult: ...

    @abc.abstractmethod
    async def update_event(
        self, calendar_id: str, reference: str, fields: BookingEventFields
    ) -> EventResult: ...

    @abc.abstractmethod
    async def delete_event(self, calendar_id: str, reference: str) -> DeleteResult: ...

    @abc.abstractmethod
    async def list_events(
        self,
        calendar_id: str,
        start_date: str,
        end_date: str,
        title_prefix: Optional[str] = None,
    ) -> ListResult: ...

    async def aclose(self) -> None:
        """Release provider resources."""
        return None


def build_event_summary(client_name: str, prefix: str = CALENDAR_EVENT_PREFIX) -> str:
    return f"{prefix}{client_name}"


def build_event_description(fields: BookingEventFields) -> str:
    description = f"Teléfono: {fields.client_phone}"
    if fields.service:
        description += f"\nServicio: {fields.service}"
    if fields.notes:
        description += f"\nNotas: {fields.notes}"
    return description


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return payload.get("error_description") or error
    return f"HTTP {response.status_code}"


class _GatewayFailure(Exception):
    """Internal signal carrying a ProviderError out of the request helpers."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Decoded JSON object of a successful response"""
    try:
        payload = response.json()
    except ValueError:
        raise _GatewayFailure("Invalid JSON response", response.status_code) from None
    if not isinstance(payload, dict):
        raise _GatewayFailure("Invalid JSON response", response.status_code)
    return payload


class GoogleCalendarGateway(CalendarGateway):
    """
    Google Calendar v3 gateway.

    Authenticates with an OAuth refresh token (client id/secret) and caches the
    access token until shortly before expiry. A static access token can be used
    instead for local testing. Each request is bounded by ``timeout`` seconds.
    Apart from one token refresh after a 401 there are no retries here; the
    reconciliation pass owns retry.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = GOOGLE_API_TIMEOUT,
        timezone: str = VENUE_TIMEZONE,
        event_prefix: str = CALENDAR_EVENT_PREFIX,
        reminder_overrides: Optional[list[dict[str, Any]]] = None,
        client_id: Optional[str] = GOOGLE_CLIENT_ID,
        client_secret: Optional[str] = GOOGLE_CLIENT_SECRET,
        refresh_token: Optional[str] = GOOGLE_REFRESH_TOKEN,
        access_token: Optional[str] = GOOGLE_ACCESS_TOKEN,
    ):
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout
        self.timezone = timezone
        self.event_prefix = event_prefix
        self.reminder_overrides = reminder_overrides or [
            {"method": "email", "minutes": REMINDER_EMAIL_MINUTES},
            {"method": "popup", "minutes": REMINDER_POPUP_MINUTES},
        ]
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._access_token = access_token
        self._token_expires_at: Optional[datetime] = None
        self._token_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self._refresh_token and self._client_id and self._client_secret) or bool(
            self._access_token
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def _can_refresh(self) -> bool:
        return bool(self._refresh_token and self._client_id and self._client_secret)

    async def _get_access_token(self, force_refresh: bool = False) -> str:
        async with self._token_lock:
            if not self._can_refresh():
                if not self._access_token:
                    raise _GatewayFailure("Google Calendar credentials not configured")
                return self._access_token

            still_valid = (
                self._access_token
                and self._token_expires_at
                and self._token_expires_at > datetime.utcnow() + timedelta(minutes=5)
            )
            if still_valid and not force_refresh:
                return self._access_token

            logger.info("🔄 Google Calendar token expired, refreshing...")
            try:
                response = await self._http_client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "refresh_token": self._refresh_token,
                        "grant_type": "refresh_token",
                    },
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                raise _GatewayFailure(f"Token refresh failed: {e}") from e

            if response.status_code != 200:
                raise _GatewayFailure(
                    f"Token refresh failed: {_safe_error_message(response)}", response.status_code
                )

            tokens = _json_body(response)
            new_access_token = tokens.get("access_token")
            if not new_access_token:
                raise _GatewayFailure("No access token in refresh response")
            try:
                expires_in = int(tokens.get("expires_in", 3600))
            except (TypeError, ValueError):
                raise _GatewayFailure("Invalid expires_in in refresh response") from None

            self._access_token = new_access_token
            self._token_expires_at = datetime.utcnow() + timedelta(seconds=expires_in)
            logger.info("✅ Google Calendar token refreshed successfully")
            return new_access_token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        url = f"{GOOGLE_CALENDAR_API}{path}"

        async def send(force_refresh: bool) -> httpx.Response:
            token = await self._get_access_token(force_refresh=force_refresh)
            try:
                return await self._http_client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as e:
                raise _GatewayFailure(f"Request timed out after {self.timeout}s") from e
            except httpx.HTTPError as e:
                raise _GatewayFailure(f"Request failed: {e}") from e

        response = await send(force_refresh=False)
        if response.status_code == 401 and self._can_refresh():
            response = await send(force_refresh=True)
        return response

    # ------------------------------------------------------------------
    # Event payloads
    # ------------------------------------------------------------------

    def build_event_body(self, fields: BookingEventFields) -> dict[str, Any]:
        start_datetime = datetime.combine(
            date_cls.fromisoformat(fields.date), time_cls.fromisoformat(fields.time)
        )
        end_datetime = start_datetime + timedelta(minutes=fields.duration_minutes)
        return {
            "summary": build_event_summary(fields.client_name, self.event_prefix),
            "description": build_event_description(fields),
            # Naive local times; Google resolves them in the given zone
            "start": {"dateTime": start_datetime.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": end_datetime.isoformat(), "timeZone": self.timezone},
            "reminders": {"useDefault": False, "overrides": self.reminder_overrides},
        }

    def _window_bounds(self, start_date: str, end_date: str) -> tuple[str, str]:
        tz = ZoneInfo(self.timezone)
        time_min = datetime.combine(date_cls.fromisoformat(start_date), time_cls(0, 0), tzinfo=tz)
        time_max = datetime.combine(
            date_cls.fromisoformat(end_date), time_cls(23, 59, 59), tzinfo=tz
        )
        return time_min.isoformat(), time_max.isoformat()

    @staticmethod
    def _to_calendar_event(item: dict[str, Any], calendar_id: str) -> Optional[CalendarEvent]:
        event_id = item.get("id")
        if not event_id:
            return None
        start = item.get("start") or {}
        end = item.get("end") or {}
        return CalendarEvent(
            id=event_id,
            calendar_id=calendar_id,
            summary=item.get("summary"),
            start=start.get("dateTime") or start.get("date"),
            end=end.get("dateTime") or end.get("date"),
            html_link=item.get("htmlLink"),
        )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_event(self, calendar_id: str, fields: BookingEventFields) -> EventResult:
        try:
            response = await self._request(
                "POST",
                f"/calendars/{quote(calendar_id, safe='')}/events",
                json_body=self.build_event_body(fields),
            )
        except _GatewayFailure as e:
            logger.error(f"❌ Error creating calendar event in {calendar_id}: {e.message}")
            return EventResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="create",
                    message=e.message,
                    status_code=e.status_code,
                ),
            )

        if response.status_code not in (200, 201):
            message = _safe_error_message(response)
            logger.error(f"❌ Failed to create calendar event in {calendar_id}: {message}")
            return EventResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="create",
                    message=message,
                    status_code=response.status_code,
                ),
            )

        try:
            event = _json_body(response)
        except _GatewayFailure as e:
            logger.error(f"❌ Unreadable create response from {calendar_id}: {e.message}")
            return EventResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="create",
                    message=e.message,
                    status_code=e.status_code,
                ),
            )
        logger.info(f"✅ Google Calendar event created in {calendar_id}: {event.get('id')}")
        return EventResult(ok=True, reference=event.get("id"), html_link=event.get("htmlLink"))

    async def update_event(
        self, calendar_id: str, reference: str, fields: BookingEventFields
    ) -> EventResult:
        try:
            response = await self._request(
                "PUT",
                f"/calendars/{quote(calendar_id, safe='')}/events/{quote(reference, safe='')}",
                json_body=self.build_event_body(fields),
            )
        except _GatewayFailure as e:
            logger.error(f"❌ Error updating calendar event {reference}: {e.message}")
            return EventResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="update",
                    message=e.message,
                    status_code=e.status_code,
                ),
            )

        if response.status_code != 200:
            message = _safe_error_message(response)
            logger.warning(f"⚠️ Failed to update calendar event {reference}: {message}")
            return EventResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="update",
                    message=message,
                    status_code=response.status_code,
                ),
            )

        try:
            event = _json_body(response)
        except _GatewayFailure as e:
            logger.error(f"❌ Unreadable update response for {reference}: {e.message}")
            return EventResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="update",
                    message=e.message,
                    status_code=e.status_code,
                ),
            )
        logger.info(f"✅ Google Calendar event updated: {reference}")
        return EventResult(
            ok=True, reference=event.get("id") or reference, html_link=event.get("htmlLink")
        )

    async def delete_event(self, calendar_id: str, reference: str) -> DeleteResult:
        try:
            response = await self._request(
                "DELETE",
                f"/calendars/{quote(calendar_id, safe='')}/events/{quote(reference, safe='')}",
            )
        except _GatewayFailure as e:
            logger.error(f"❌ Error deleting calendar event {reference}: {e.message}")
            return DeleteResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="delete",
                    message=e.message,
                    status_code=e.status_code,
                ),
            )

        if response.status_code in NOT_FOUND_STATUS_CODES:
            logger.info(f"ℹ️ Calendar event {reference} already absent from {calendar_id}")
            return DeleteResult(ok=True, already_absent=True)

        if response.status_code not in (200, 204):
            message = _safe_error_message(response)
            logger.error(f"❌ Failed to delete calendar event {reference}: {message}")
            return DeleteResult(
                ok=False,
                error=ProviderError(
                    calendar_id=calendar_id,
                    operation="delete",
                    message=message,
                    status_code=response.status_code,
                ),
            )

        logger.info(f"✅ Google Calendar event deleted: {reference}")
        return DeleteResult(ok=True)

    async def list_events(
        self,
        calendar_id: str,
        start_date: str,
        end_date: str,
        title_prefix: Optional[str] = None,
    ) -> ListResult:
        time_min, time_max = self._window_bounds(start_date, end_date)
        params: dict[str, Any] = {
            "timeMin": time_min,
            "timeMax": time_max,
            "singleEvents": True,
            "orderBy": "startTime",
            "maxResults": LIST_PAGE_SIZE,
        }

        events: list[CalendarEvent] = []
        total_seen = 0
        while True:
            try:
                response = await self._request(
                    "GET", f"/calendars/{quote(calendar_id, safe='')}/events", params=params
                )
                payload = _json_body(response) if response.status_code == 200 else None
            except _GatewayFailure as e:
                logger.error(f"❌ Error listing events of {calendar_id}: {e.message}")
                return ListResult(
                    ok=False,
                    error=ProviderError(
                        calendar_id=calendar_id,
                        operation="list",
                        message=e.message,
                        status_code=e.status_code,
                    ),
                )

            if response.status_code != 200:
                message = _safe_error_message(response)
                logger.error(f"❌ Failed to list events of {calendar_id}: {message}")
                return ListResult(
                    ok=False,
                    error=ProviderError(
                        calendar_id=calendar_id,
                        operation="list",
                        message=message,
                        status_code=response.status_code,
                    ),
                )

            for item in payload.get("items") or []:
                total_seen += 1
                event = self._to_calendar_event(item, calendar_id)
                if event is None:
                    continue
                if title_prefix and not (event.summary or "").startswith(title_prefix):
                    continue
                events.append(event)

            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}

        if title_prefix:
            logger.info(f"🎯 Filtered {len(events)} booking events out of {total_seen} in {calendar_id}")
        return ListResult(ok=True, events=events)
