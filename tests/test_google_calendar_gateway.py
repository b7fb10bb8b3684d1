import json

import httpx
import pytest

from salon_api.services.google_calendar_service import (
    GOOGLE_TOKEN_URL,
    BookingEventFields,
    GoogleCalendarGateway,
)

FIELDS = BookingEventFields(
    client_name="Ana Pérez",
    client_phone="+5491123456789",
    date="2030-06-12",
    time="10:30",
    service="Corte",
    duration_minutes=30,
)


def make_gateway(handler, **kwargs):
    options = {"access_token": "static-token", "client_id": None, "client_secret": None, "refresh_token": None}
    options.update(kwargs)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleCalendarGateway(client, timezone="America/Argentina/Buenos_Aires", event_prefix="Turno con ", **options)


async def test_create_event_returns_reference_and_sends_local_times():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "evt123", "htmlLink": "https://calendar/evt123"})

    gateway = make_gateway(handler)
    result = await gateway.create_event("salon@group.calendar.google.com", FIELDS)

    assert result.ok
    assert result.reference == "evt123"
    assert seen["path"].endswith("/calendars/salon@group.calendar.google.com/events")
    assert seen["auth"] == "Bearer static-token"
    body = seen["body"]
    assert body["summary"] == "Turno con Ana Pérez"
    assert body["start"] == {"dateTime": "2030-06-12T10:30:00", "timeZone": "America/Argentina/Buenos_Aires"}
    assert body["end"]["dateTime"] == "2030-06-12T11:00:00"
    assert body["reminders"]["useDefault"] is False
    assert "+5491123456789" in body["description"]


async def test_create_event_http_error_becomes_typed_failure():
    def handler(request):
        return httpx.Response(403, json={"error": {"message": "Insufficient permissions"}})

    result = await make_gateway(handler).create_event("cal", FIELDS)

    assert not result.ok
    assert result.error.status_code == 403
    assert result.error.operation == "create"
    assert "Insufficient permissions" in result.error.message


async def test_timeout_becomes_typed_failure():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    result = await make_gateway(handler).update_event("cal", "evt1", FIELDS)

    assert not result.ok
    assert result.error.status_code is None
    assert "timed out" in result.error.message


async def test_missing_credentials_never_raises():
    def handler(request):
        raise AssertionError("no request expected")

    gateway = make_gateway(handler, access_token=None)
    result = await gateway.create_event("cal", FIELDS)

    assert not result.ok
    assert "not configured" in result.error.message
    assert gateway.configured is False


async def test_delete_missing_event_is_acknowledged():
    def handler(request):
        return httpx.Response(410, json={"error": {"message": "Resource has been deleted"}})

    result = await make_gateway(handler).delete_event("cal", "evt1")

    assert result.ok
    assert result.already_absent


async def test_update_missing_event_reports_not_found():
    def handler(request):
        return httpx.Response(404, json={"error": {"message": "Not Found"}})

    result = await make_gateway(handler).update_event("cal", "evt1", FIELDS)

    assert not result.ok
    assert result.error.not_found


async def test_list_events_paginates_and_filters_by_prefix():
    pages = {
        None: {
            "items": [
                {"id": "a", "summary": "Turno con Ana", "start": {"dateTime": "2030-06-12T10:00:00-03:00"}},
                {"id": "b", "summary": "Dentist", "start": {"dateTime": "2030-06-12T11:00:00-03:00"}},
            ],
            "nextPageToken": "page2",
        },
        "page2": {
            "items": [{"id": "c", "summary": "Turno con Bea", "start": {"dateTime": "2030-06-13T09:00:00-03:00"}}],
        },
    }
    seen_params = []

    def handler(request):
        seen_params.append(dict(request.url.params))
        return httpx.Response(200, json=pages[request.url.params.get("pageToken")])

    result = await make_gateway(handler).list_events("cal", "2030-06-12", "2030-06-13", title_prefix="Turno con ")

    assert result.ok
    assert [e.id for e in result.events] == ["a", "c"]
    assert seen_params[0]["singleEvents"] == "true"
    assert seen_params[0]["timeMin"] == "2030-06-12T00:00:00-03:00"
    assert seen_params[0]["timeMax"] == "2030-06-13T23:59:59-03:00"
    assert seen_params[1]["pageToken"] == "page2"


async def test_list_events_without_prefix_returns_everything():
    def handler(request):
        return httpx.Response(
            200,
            json={"items": [{"id": "a", "summary": "Turno con Ana"}, {"id": "b", "summary": "Dentist"}]},
        )

    result = await make_gateway(handler).list_events("cal", "2030-06-12", "2030-06-12")
    assert [e.id for e in result.events] == ["a", "b"]


async def test_list_failure_is_reported():
    def handler(request):
        return httpx.Response(500, text="boom")

    result = await make_gateway(handler).list_events("cal", "2030-06-12", "2030-06-12")

    assert not result.ok
    assert result.error.operation == "list"
    assert result.error.status_code == 500


async def test_refresh_token_flow_and_retry_after_401():
    token_requests = []
    api_tokens = []

    def handler(request):
        if str(request.url) == GOOGLE_TOKEN_URL:
            token_requests.append(request)
            return httpx.Response(200, json={"access_token": f"token-{len(token_requests)}", "expires_in": 3600})
        api_tokens.append(request.headers["Authorization"])
        if len(api_tokens) == 1:
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})
        return httpx.Response(200, json={"id": "evt9"})

    gateway = make_gateway(
        handler, access_token=None, client_id="cid", client_secret="secret", refresh_token="refresh"
    )
    result = await gateway.create_event("cal", FIELDS)

    assert result.ok
    assert result.reference == "evt9"
    assert len(token_requests) == 2
    assert api_tokens == ["Bearer token-1", "Bearer token-2"]


async def test_cached_token_is_reused():
    token_requests = []

    def handler(request):
        if str(request.url) == GOOGLE_TOKEN_URL:
            token_requests.append(request)
            return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})
        return httpx.Response(204)

    gateway = make_gateway(
        handler, access_token=None, client_id="cid", client_secret="secret", refresh_token="refresh"
    )
    await gateway.delete_event("cal", "e1")
    await gateway.delete_event("cal", "e2")

    assert len(token_requests) == 1


@pytest.mark.parametrize("status_code", [200, 204])
async def test_delete_success_codes(status_code):
    result = await make_gateway(lambda request: httpx.Response(status_code)).delete_event("cal", "e1")
    assert result.ok and not result.already_absent


def html_page(request):
    return httpx.Response(200, text="<html>proxy error</html>")


async def test_create_event_with_unreadable_body_is_typed_failure():
    result = await make_gateway(html_page).create_event("cal", FIELDS)

    assert not result.ok
    assert result.error.operation == "create"
    assert result.error.message == "Invalid JSON response"
    assert result.error.status_code == 200


async def test_update_event_with_unreadable_body_is_typed_failure():
    result = await make_gateway(html_page).update_event("cal", "evt1", FIELDS)

    assert not result.ok
    assert not result.error.not_found
    assert result.error.operation == "update"
    assert result.error.message == "Invalid JSON response"


async def test_list_events_with_unreadable_body_is_typed_failure():
    result = await make_gateway(html_page).list_events("cal", "2030-06-12", "2030-06-12")

    assert not result.ok
    assert result.error.operation == "list"
    assert result.error.message == "Invalid JSON response"


async def test_list_events_with_non_object_body_is_typed_failure():
    result = await make_gateway(lambda request: httpx.Response(200, json=["a", "b"])).list_events(
        "cal", "2030-06-12", "2030-06-12"
    )

    assert not result.ok
    assert result.error.message == "Invalid JSON response"


@pytest.mark.parametrize(
    "token_response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"access_token": "fresh", "expires_in": "soon"}),
    ],
)
async def test_unreadable_token_refresh_becomes_typed_failure(token_response):
    def handler(request):
        if str(request.url) == GOOGLE_TOKEN_URL:
            return token_response
        return httpx.Response(204)

    gateway = make_gateway(
        handler, access_token=None, client_id="cid", client_secret="secret", refresh_token="refresh"
    )
    result = await gateway.delete_event("cal", "e1")

    assert not result.ok
    assert result.error.operation == "delete"
