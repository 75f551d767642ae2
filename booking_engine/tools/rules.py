"""
Business rules engine: pure checks over candidate appointment intervals.

Every check returns a RuleResult rather than raising, so callers can decide
whether a violation is advisory (slot suggestions) or final (commit).
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from booking_engine.schemas.booking_schema import FailureReason
from booking_engine.tools.business_hours import HoursTable
from booking_engine.tools.services import ServiceCatalog
from booking_engine.utils import parse_hhmm, parse_iso_date


@dataclass(frozen=True)
class RuleResult:
    """Outcome of a single rule check."""

    ok: bool
    reason: Optional[str] = None
    code: Optional[FailureReason] = None


OK = RuleResult(ok=True)


def service_duration(service_name: str, catalog: ServiceCatalog) -> Optional[int]:
    """Minutes of billable service time, or None if the service is not offered."""
    return catalog.duration(service_name)


def parse_start(date_str: Optional[str], time_str: Optional[str], tz: tzinfo) -> Optional[datetime]:
    """Combine YYYY-MM-DD and HH:MM into an aware datetime in the shop zone."""
    day = parse_iso_date(date_str)
    clock = parse_hhmm(time_str)
    if day is None or clock is None:
        return None
    return datetime.combine(day, clock, tzinfo=tz)


def reservation_end(start: datetime, duration_minutes: int, buffer_minutes: int) -> datetime:
    """End of the blocked interval: service time plus the post-service buffer."""
    return start + timedelta(minutes=duration_minutes + buffer_minutes)


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open [start, end) overlap; touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def check_lead_time(start: datetime, now: datetime, min_lead_minutes: int) -> RuleResult:
    """Same-day bookings need at least ``min_lead_minutes`` notice."""
    local_now = now.astimezone(start.tzinfo)
    if start.date() != local_now.date():
        return OK
    if start - local_now < timedelta(minutes=min_lead_minutes):
        return RuleResult(
            ok=False,
            reason=f"Same-day bookings must be at least {min_lead_minutes} minutes in advance.",
            code=FailureReason.LEAD_TIME,
        )
    return OK


def check_business_hours(start: datetime, end: datetime, hours: HoursTable) -> RuleResult:
    """The whole interval, buffer included, must fall inside the day's hours."""
    opening = hours.for_date(start.date())
    if opening is None:
        return RuleResult(ok=False, reason="Shop is closed that day.", code=FailureReason.CLOSED_DAY)

    open_at = datetime.combine(start.date(), opening.open, tzinfo=start.tzinfo)
    close_at = datetime.combine(start.date(), opening.close, tzinfo=start.tzinfo)

    if start < open_at:
        return RuleResult(
            ok=False,
            reason=f"Too early. Opens at {opening.open:%H:%M}.",
            code=FailureReason.TOO_EARLY,
        )
    if end > close_at:
        return RuleResult(
            ok=False,
            reason=f"Too late. Closes at {opening.close:%H:%M}.",
            code=FailureReason.TOO_LATE,
        )
    return OK


def day_bounds(day: date, hours: HoursTable, tz: tzinfo) -> Optional[tuple[datetime, datetime]]:
    """Aware open/close instants for a date, or None when closed."""
    opening = hours.for_date(day)
    if opening is None:
        return None
    return (
        datetime.combine(day, opening.open, tzinfo=tz),
        datetime.combine(day, opening.close, tzinfo=tz),
    )
