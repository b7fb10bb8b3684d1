"""
WhatsApp Notification Service
Sends booking confirmations through the Meta Cloud API or Twilio.
Delivery is best-effort: callers get a status, never an exception.
"""

import logging
import re
from datetime import date as date_cls
from typing import Optional

import httpx

from ..config import (
    SALON_NAME,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_WHATSAPP_FROM,
    WHATSAPP_ACCESS_TOKEN,
    WHATSAPP_API_VERSION,
    WHATSAPP_PHONE_NUMBER_ID,
    WHATSAPP_PROVIDER,
)

logger = logging.getLogger(__name__)

NOTIFICATION_SENT = "sent"
NOTIFICATION_FAILED = "failed"
NOTIFICATION_SKIPPED = "skipped"

WEEKDAYS_ES = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


def format_whatsapp_number(phone: Optional[str]) -> Optional[str]:
    """
    Digits-only international number for an Argentine phone, or None.

    "+54 9 11 2345-6789" -> "5491123456789"
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("54"):
        return digits
    if digits.startswith("9"):
        return f"54{digits}"
    if digits.startswith("11") or 8 <= len(digits) <= 10:
        return f"549{digits}"
    return None


def format_spanish_date(value: str) -> str:
    """2025-03-10 -> lunes, 10 de marzo de 2025"""
    day = date_cls.fromisoformat(value)
    return f"{WEEKDAYS_ES[day.weekday()]}, {day.day} de {MONTHS_ES[day.month - 1]} de {day.year}"


def build_confirmation_message(client_name: str, booking_date: str, booking_time: str, salon_name: str = SALON_NAME) -> str:
    return (
        "🎉 *¡Turno Confirmado!*\n\n"
        f"Hola {client_name}! 👋\n\n"
        "Tu turno ha sido agendado:\n\n"
        f"📅 *Fecha:* {format_spanish_date(booking_date)}\n"
        f"🕐 *Hora:* {booking_time}\n\n"
        "¡Te esperamos en el salón!\n\n"
        "Si necesitas cambiar o cancelar tu turno, contáctanos.\n\n"
        f"Saludos,\n{salon_name} ✨"
    )


class WhatsAppSender:
    """WhatsApp sender for one configured provider ("meta", "twilio" or "disabled")"""

    def __init__(
        self,
        provider: str = WHATSAPP_PROVIDER,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        meta_access_token: Optional[str] = WHATSAPP_ACCESS_TOKEN,
        meta_phone_number_id: Optional[str] = WHATSAPP_PHONE_NUMBER_ID,
        meta_api_version: str = WHATSAPP_API_VERSION,
        twilio_account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        twilio_auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        twilio_whatsapp_from: Optional[str] = TWILIO_WHATSAPP_FROM,
    ):
        self.provider = (provider or "disabled").lower()
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout
        self.meta_access_token = meta_access_token
        self.meta_phone_number_id = meta_phone_number_id
        self.meta_base_url = f"https://graph.facebook.com/{meta_api_version}"
        self.twilio_account_sid = twilio_account_sid
        self.twilio_auth_token = twilio_auth_token
        self.twilio_whatsapp_from = twilio_whatsapp_from

    @property
    def configured(self) -> bool:
        if self.provider == "meta":
            return bool(self.meta_access_token and self.meta_phone_number_id)
        if self.provider == "twilio":
            return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_whatsapp_from)
        return False

    def provider_info(self) -> dict:
        return {"provider": self.provider, "configured": self.configured}

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def send_message(self, to_phone: str, body: str) -> tuple[bool, Optional[str]]:
        """
        Send a WhatsApp text message

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        number = format_whatsapp_number(to_phone)
        if not number:
            return False, "Invalid phone number"

        try:
            if self.provider == "meta":
                return await self._send_via_meta(number, body)
            if self.provider == "twilio":
                return await self._send_via_twilio(number, body)
        except httpx.HTTPError as e:
            logger.error(f"❌ WhatsApp request failed ({self.provider}): {e}")
            return False, str(e)

        return False, f"Unsupported WhatsApp provider: {self.provider}"

    async def _send_via_meta(self, number: str, body: str) -> tuple[bool, Optional[str]]:
        response = await self._http_client.post(
            f"{self.meta_base_url}/{self.meta_phone_number_id}/messages",
            json={
                "messaging_product": "whatsapp",
                "to": number,
                "type": "text",
                "text": {"body": body},
            },
            headers={"Authorization": f"Bearer {self.meta_access_token}"},
            timeout=self.timeout,
        )
        if response.status_code in (200, 201):
            message_id = (response.json().get("messages") or [{}])[0].get("id")
            logger.info(f"✅ WhatsApp sent via Meta to {number}: {message_id}")
            return True, None

        try:
            error = response.json().get("error", {}).get("message") or response.text
        except ValueError:
            error = response.text
        logger.error(f"❌ Meta WhatsApp API error {response.status_code}: {error}")
        return False, f"Meta API error: {error}"

    async def _send_via_twilio(self, number: str, body: str) -> tuple[bool, Optional[str]]:
        response = await self._http_client.post(
            f"https://api.twilio.com/2010-04-01/Accounts/{self.twilio_account_sid}/Messages.json",
            auth=(self.twilio_account_sid, self.twilio_auth_token),
            data={
                "From": self.twilio_whatsapp_from,
                "To": f"whatsapp:+{number}",
                "Body": body,
            },
            timeout=self.timeout,
        )
        if response.status_code in (200, 201):
            logger.info(f"✅ WhatsApp sent via Twilio to {number}: {response.json().get('sid')}")
            return True, None

        try:
            error = response.json().get("message") or response.text
        except ValueError:
            error = response.text
        logger.error(f"❌ Twilio WhatsApp API error {response.status_code}: {error}")
        return False, f"Twilio API error: {error}"

    async def send_booking_confirmation(self, booking, salon_name: str = SALON_NAME) -> tuple[str, Optional[str]]:
        """
        Send the confirmation for a booking.

        Returns:
            (notification_status, error) where status is sent, failed or skipped
        """
        if not self.configured:
            logger.debug(f"WhatsApp provider '{self.provider}' not configured, skipping")
            return NOTIFICATION_SKIPPED, None

        message = build_confirmation_message(booking.client.name, booking.date, booking.time, salon_name)
        success, error = await self.send_message(booking.client.phone, message)
        if success:
            return NOTIFICATION_SENT, None
        return NOTIFICATION_FAILED, error
