"""Dynamic prompt and reply construction."""

from datetime import date, datetime
from typing import Optional

from booking_engine.schemas.booking_schema import Draft, Reservation
from booking_engine.utils import format_date_label, format_time_label, parse_hhmm, parse_iso_date


def build_extraction_prompt(
    message: str,
    prior: Draft,
    today: date,
    now: datetime,
    known_services: list[str],
    timezone_name: str,
) -> str:
    """Build the user prompt sent to the NLU collaborator for one turn."""

    def shown(value: Optional[str]) -> str:
        return value or "Not provided"

    return f"""Today is {today.isoformat()} ({today.strftime('%A')}). Current local time is {now:%Y-%m-%d %H:%M} ({timezone_name}).

Services available: {", ".join(known_services)}

Already collected data:
- Service: {shown(prior.service_name)}
- Date: {shown(prior.date)}
- Time: {shown(prior.time)}
- Name: {shown(prior.customer_name)}
- Phone: {shown(prior.customer_phone)}
- Email: {shown(prior.customer_email)}

User message: "{message}"

Extract any NEW booking information from the user's message.
Respond with a JSON object:
{{
  "serviceName": "service name from our list or null",
  "date": "YYYY-MM-DD format or null",
  "time": "HH:MM 24-hour format or null",
  "customerName": "full name or null",
  "customerPhone": "phone number or null",
  "customerEmail": "email or null",
  "notes": "any special request or null",
  "confirmed": true/false/null
}}"""


def describe_when(date_str: Optional[str], time_str: Optional[str]) -> tuple[str, str]:
    """Human labels for a Draft's date and time, falling back to the raw text."""
    day = parse_iso_date(date_str)
    clock = parse_hhmm(time_str)
    return (
        format_date_label(day) if day else (date_str or ""),
        format_time_label(clock) if clock else (time_str or ""),
    )


def build_summary(draft: Draft) -> str:
    """Read-back of the collected fields with a confirmation request."""
    date_label, time_label = describe_when(draft.date, draft.time)
    lines = [
        "Booking summary:",
        f"- Service: {draft.service_name}",
        f"- Date: {date_label} ({draft.date})",
        f"- Time: {time_label}",
        f"- Name: {draft.customer_name}",
        f"- Phone: {draft.customer_phone}",
    ]
    if draft.customer_email:
        lines.append(f"- Email: {draft.customer_email}")
    if draft.notes:
        lines.append(f"- Notes: {draft.notes}")
    lines.append("")
    lines.append('Reply "confirm" to book, or tell me what to change.')
    return "\n".join(lines)


def build_alternative_times_prompt(day: date, slots: list[datetime]) -> str:
    """Offer alternative start times on the same day."""
    times = ", ".join(format_time_label(slot.timetz()) for slot in slots)
    return f"Open times on {format_date_label(day)}: {times}."


def build_validation_failure_reply(
    reason: str, question: str, day: Optional[date] = None, slots: Optional[list[datetime]] = None
) -> str:
    """Explain why the booking could not be made and ask the corrective question."""
    parts = [f"Can't book that yet: {reason}"]
    if day is not None and slots:
        parts.append(build_alternative_times_prompt(day, slots))
    parts.append(question)
    return "\n\n".join(parts)


def build_booked_reply(reservation: Reservation) -> str:
    """Confirmation message for a committed reservation."""
    return (
        "Booked! Your appointment is confirmed.\n\n"
        f"- Service: {reservation.service_name}\n"
        f"- Date: {format_date_label(reservation.start_at.date())}\n"
        f"- Time: {format_time_label(reservation.start_at.timetz())}\n\n"
        f"Booking ID: {reservation.id}"
    )
