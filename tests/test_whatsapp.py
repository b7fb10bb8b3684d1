import json
from types import SimpleNamespace

import httpx
import pytest

from salon_api.services.whatsapp_service import (
    NOTIFICATION_FAILED,
    NOTIFICATION_SENT,
    NOTIFICATION_SKIPPED,
    WhatsAppSender,
    build_confirmation_message,
    format_spanish_date,
    format_whatsapp_number,
)

BOOKING = SimpleNamespace(
    client=SimpleNamespace(name="Ana", phone="+54 9 11 2345-6789"),
    date="2030-06-10",
    time="10:30",
)


@pytest.mark.parametrize(
    "phone, expected",
    [
        ("+54 9 11 2345-6789", "5491123456789"),
        ("9 11 2345 6789", "5491123456789"),
        ("11 2345-6789", "5491123456789"),
        ("", None),
        (None, None),
        ("123", None),
    ],
)
def test_format_whatsapp_number(phone, expected):
    assert format_whatsapp_number(phone) == expected


def test_format_spanish_date():
    assert format_spanish_date("2030-06-10") == "lunes, 10 de junio de 2030"


def test_confirmation_message_mentions_booking():
    message = build_confirmation_message("Ana", "2030-06-10", "10:30", "Salón Test")
    assert "Hola Ana!" in message
    assert "lunes, 10 de junio de 2030" in message
    assert "10:30" in message
    assert message.endswith("Salón Test ✨")


async def test_disabled_provider_skips():
    sender = WhatsAppSender(provider="disabled")
    status, error = await sender.send_booking_confirmation(BOOKING)
    await sender.aclose()
    assert (status, error) == (NOTIFICATION_SKIPPED, None)


async def test_meta_provider_posts_text_message():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        sender = WhatsAppSender(
            provider="meta",
            http_client=http,
            meta_access_token="token",
            meta_phone_number_id="12345",
            meta_api_version="v21.0",
        )
        status, error = await sender.send_booking_confirmation(BOOKING, salon_name="Salón Test")

    assert status == NOTIFICATION_SENT
    assert error is None
    request = seen[0]
    assert request.url.path == "/v21.0/12345/messages"
    assert request.headers["Authorization"] == "Bearer token"
    body = json.loads(request.content)
    assert body["to"] == "5491123456789"
    assert "Hola Ana!" in body["text"]["body"]


async def test_meta_error_reports_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Invalid recipient"}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        sender = WhatsAppSender(
            provider="meta", http_client=http, meta_access_token="t", meta_phone_number_id="1"
        )
        status, error = await sender.send_booking_confirmation(BOOKING)

    assert status == NOTIFICATION_FAILED
    assert "Invalid recipient" in error


async def test_twilio_provider_posts_form():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"sid": "SM1"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        sender = WhatsAppSender(
            provider="twilio",
            http_client=http,
            twilio_account_sid="AC1",
            twilio_auth_token="secret",
            twilio_whatsapp_from="whatsapp:+14155238886",
        )
        ok, error = await sender.send_message("+54 9 11 2345-6789", "hola")

    assert ok and error is None
    assert seen[0].url.path == "/2010-04-01/Accounts/AC1/Messages.json"
    assert b"To=whatsapp%3A%2B5491123456789" in seen[0].content


async def test_transport_error_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        sender = WhatsAppSender(
            provider="meta", http_client=http, meta_access_token="t", meta_phone_number_id="1"
        )
        ok, error = await sender.send_message("+5491123456789", "hola")

    assert not ok
    assert "unreachable" in error


async def test_invalid_phone_is_rejected_before_sending():
    sender = WhatsAppSender(provider="meta", meta_access_token="t", meta_phone_number_id="1")
    ok, error = await sender.send_message("123", "hola")
    await sender.aclose()
    assert (ok, error) == (False, "Invalid phone number")
