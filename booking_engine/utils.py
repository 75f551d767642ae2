"""Shared utilities used across the booking engine."""

import re
from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from booking_engine.config import settings


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(416) 555-0199")
        '4165550199'
        >>> normalize_phone("+1 416 555 0199")
        '+14165550199'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def to_e164(value: str, default_country_code: str) -> str:
    """Format a phone number as E.164, prefixing the country code when none is given.

    Examples:
        >>> to_e164("416-555-0199", "1")
        '+14165550199'
        >>> to_e164("1 (416) 555-0199", "1")
        '+14165550199'
        >>> to_e164("+44 20 7946 0958", "1")
        '+442079460958'
    """
    number = normalize_phone(value)
    if number.startswith("+"):
        return number
    if number.startswith("00"):
        return "+" + number[2:]
    if number.startswith(default_country_code) and len(number) > 10:
        return "+" + number
    return f"+{default_country_code}{number}"


def shop_timezone() -> ZoneInfo:
    """Timezone all wall-clock dates and times are interpreted in."""
    return ZoneInfo(settings.business.timezone)


def shop_now() -> datetime:
    """Current aware time in the shop's timezone. The default clock."""
    return datetime.now(shop_timezone())


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY-MM-DD, returning None instead of raising."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_hhmm(value: Optional[str]) -> Optional[time]:
    """Parse 24-hour HH:MM, returning None instead of raising."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError:
        return None


def format_date_label(value: date) -> str:
    """'Tuesday, October 20' style label for replies and notifications."""
    return f"{value.strftime('%A, %B')} {value.day}"


def format_time_label(value: time) -> str:
    """'2:00 PM' style label for replies and notifications."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"
