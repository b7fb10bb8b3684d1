"""Shared validation utilities"""

import re
from datetime import date, datetime
from typing import NamedTuple, Optional

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")


class PhoneValidation(NamedTuple):
    valid: bool
    normalized: Optional[str] = None
    error: Optional[str] = None


def validate_phone_format(phone: Optional[str]) -> PhoneValidation:
    """
    Validate an Argentine mobile number.

    Args:
        phone: Phone number string in any format (e.g. "+54 9 11 1234-5678")

    Returns:
        PhoneValidation with the E.164 form (+549XXXXXXXXXX) when valid
    """
    if not phone or not isinstance(phone, str):
        return PhoneValidation(False, error="Phone number is required")

    digits = re.sub(r"\D", "", phone)

    if not digits.startswith("549"):
        return PhoneValidation(False, error="Must be an Argentine mobile number (+549 format)")

    # 549 + area code + subscriber number
    if len(digits) < 11 or len(digits) > 14:
        return PhoneValidation(False, error="Invalid phone number length")

    return PhoneValidation(True, normalized=f"+{digits}")


def validate_ar_phone(phone: Optional[str]) -> Optional[str]:
    """
    Pydantic-friendly wrapper around validate_phone_format.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone
    result = validate_phone_format(phone)
    if not result.valid:
        raise ValueError(result.error)
    return result.normalized


def validate_date_string(value: str) -> str:
    """Validate a YYYY-MM-DD calendar date"""
    if not DATE_PATTERN.match(value or ""):
        raise ValueError("Invalid date format (YYYY-MM-DD)")
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid date: {value}") from e
    return value


def validate_time_string(value: str) -> str:
    """Validate an HH:MM 24h time"""
    if not TIME_PATTERN.match(value or ""):
        raise ValueError("Invalid time format (HH:MM)")
    try:
        datetime.strptime(value, "%H:%M")
    except ValueError as e:
        raise ValueError(f"Invalid time: {value}") from e
    return value
