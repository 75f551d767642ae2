"""
Deterministic rule-based extraction, run on every turn alongside the NLU
collaborator.

Recognizes relative and ISO dates, clock times, phone numbers, e-mail
addresses and confirmation/cancellation keywords. The result has the same
shape as the collaborator's, plus the weekday a relative phrase implies so
the merge step can arbitrate date disagreements.
"""

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from booking_engine.schemas.booking_schema import ExtractedFields
from booking_engine.utils import parse_iso_date

WEEKDAY_INDEX: dict[str, int] = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

_TOMORROW = re.compile(r"\btomorrow\b")
_TODAY = re.compile(r"\b(?:today|tonight)\b")
_WEEKDAY = re.compile(r"\b(next\s+)?(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b")
_ISO_DATE = re.compile(r"\b(20\d{2}-\d{2}-\d{2})\b")
_AMPM_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*([ap])\.?m\.?(?![a-z])")
_24H_TIME = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")
_NOON = re.compile(r"\bnoon\b")
_MIDNIGHT = re.compile(r"\bmidnight\b")
_EMAIL = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
_PHONE = re.compile(r"(\+?\d[\d\s().-]{6,}\d)")
_CONFIRM = re.compile(
    r"\b(?:confirm(?:ed)?|confrim|confim|cnofirm|yes|yep|yeah|sounds good|book it|looks good)\b",
    re.IGNORECASE,
)
_CANCEL = re.compile(r"\b(?:cancel|nope|no|never\s*mind|nevermind|stop)\b", re.IGNORECASE)

MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15


@dataclass
class FallbackResult:
    """Fields found by the rules plus the metadata the merge needs."""

    fields: ExtractedFields = field(default_factory=ExtractedFields)
    explicit_date: Optional[str] = None
    relative_date: Optional[date] = None
    implied_weekday: Optional[int] = None


def resolve_relative_date(text: str, today: date) -> tuple[Optional[date], Optional[int]]:
    """Resolve "today", "tomorrow" and weekday names against ``today``.

    A bare or "next" weekday means its next occurrence strictly after today.
    Returns the date and the weekday it implies (Monday == 0).
    """
    lower = text.lower()
    if _TOMORROW.search(lower):
        resolved = today + timedelta(days=1)
        return resolved, resolved.weekday()
    if _TODAY.search(lower):
        return today, today.weekday()
    match = _WEEKDAY.search(lower)
    if match:
        weekday = WEEKDAY_INDEX[match.group(2)]
        days_ahead = (weekday - today.weekday()) % 7 or 7
        return today + timedelta(days=days_ahead), weekday
    return None, None


def parse_clock_time(text: str) -> Optional[str]:
    """Find a wall-clock time and render it as HH:MM (24h)."""
    lower = text.lower()
    if _NOON.search(lower):
        return "12:00"
    if _MIDNIGHT.search(lower):
        return "00:00"
    match = _AMPM_TIME.search(lower)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if 1 <= hour <= 12 and 0 <= minute <= 59:
            if match.group(3) == "p" and hour < 12:
                hour += 12
            if match.group(3) == "a" and hour == 12:
                hour = 0
            return f"{hour:02d}:{minute:02d}"
    match = _24H_TIME.search(lower)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"
    return None


def parse_phone(text: str) -> Optional[str]:
    """Find a phone-number-looking run of digits, ignoring dates and times."""
    scrubbed = _ISO_DATE.sub(" ", text)
    scrubbed = _24H_TIME.sub(" ", scrubbed)
    scrubbed = _EMAIL.sub(" ", scrubbed)
    for match in _PHONE.finditer(scrubbed):
        candidate = match.group(1).strip()
        digits = re.sub(r"[^\d]", "", candidate)
        if MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
            return candidate
    return None


def detect_confirmation(text: str) -> Optional[bool]:
    """True for confirmation keywords, False for cancellation, None otherwise.

    Cancellation wins when both appear ("yes, cancel it").
    """
    if _CANCEL.search(text):
        return False
    if _CONFIRM.search(text):
        return True
    return None


def extract_fallback(text: str, today: date) -> FallbackResult:
    """Run every deterministic rule over one turn."""
    relative, weekday = resolve_relative_date(text, today)
    iso = _ISO_DATE.search(text)
    explicit_date = iso.group(1) if iso and parse_iso_date(iso.group(1)) else None
    email = _EMAIL.search(text)

    fields = ExtractedFields(
        date=explicit_date or (relative.isoformat() if relative else None),
        time=parse_clock_time(text),
        customer_phone=parse_phone(text),
        customer_email=email.group(0) if email else None,
        confirmed=detect_confirmation(text),
    )
    return FallbackResult(
        fields=fields,
        explicit_date=explicit_date,
        relative_date=relative,
        implied_weekday=weekday,
    )
