"""Venue-local date helpers"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from ..config import VENUE_TIMEZONE


def venue_now(tz_name: str = VENUE_TIMEZONE) -> datetime:
    return datetime.now(ZoneInfo(tz_name))


def venue_today(tz_name: str = VENUE_TIMEZONE) -> date:
    return venue_now(tz_name).date()


def shift_date(value: str, days: int) -> str:
    """Add days to a YYYY-MM-DD string"""
    return (date.fromisoformat(value) + timedelta(days=days)).isoformat()


def iter_dates(start: str, end: str):
    """Yield every YYYY-MM-DD from start to end inclusive"""
    current = date.fromisoformat(start)
    last = date.fromisoformat(end)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)
