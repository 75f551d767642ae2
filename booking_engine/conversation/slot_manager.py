"""
Required-field bookkeeping for the booking Draft.

Knows which fields must be filled before a booking can be confirmed, the
order they are asked for, the question for each, and which fields a failed
commit invalidates.

Usage:
    slots = SlotManager()
    if slots.is_complete(draft):
        reply = slots.confirmation_summary(draft)
    else:
        reply = slots.next_prompt(draft)
"""

import logging
from dataclasses import dataclass

from booking_engine.config import settings
from booking_engine.prompts.prompt_templates import build_summary
from booking_engine.schemas.booking_schema import Draft, FailureReason
from booking_engine.tools.services import DEFAULT_CATALOG, ServiceCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for a single Draft field to collect."""

    name: str
    display_name: str
    prompt: str
    required: bool = True


# Fields a failed commit invalidates, keyed by failure reason.
FAILURE_CLEARS: dict[FailureReason, tuple[str, ...]] = {
    FailureReason.MISSING_FIELDS: (),
    FailureReason.UNKNOWN_SERVICE: ("service_name",),
    FailureReason.INVALID_DATETIME: ("date", "time"),
    FailureReason.IN_PAST: ("date", "time"),
    FailureReason.LEAD_TIME: ("time",),
    FailureReason.CLOSED_DAY: ("date", "time"),
    FailureReason.TOO_EARLY: ("time",),
    FailureReason.TOO_LATE: ("time",),
    FailureReason.CONFLICT: ("time",),
    FailureReason.STORAGE_UNAVAILABLE: (),
}

DATE_AND_TIME_PROMPT = 'What date and time would you like? For example, "tomorrow at 2pm" or "2026-03-14 14:30".'


class SlotManager:
    """Tracks completeness of a Draft and phrases the next question."""

    # Declaration order is ask order.
    SLOT_DEFINITIONS: tuple[SlotDefinition, ...] = (
        SlotDefinition(
            name="service_name",
            display_name="service",
            prompt="What service would you like? Choose one: {services}",
        ),
        SlotDefinition(
            name="date",
            display_name="date",
            prompt='What date would you like? For example, "tomorrow", "Friday" or "2026-03-14".',
        ),
        SlotDefinition(
            name="time",
            display_name="time",
            prompt='What time would you like? For example, "2pm" or "14:30".',
        ),
        SlotDefinition(
            name="customer_name",
            display_name="name",
            prompt="What's your full name?",
        ),
        SlotDefinition(
            name="customer_phone",
            display_name="phone number",
            prompt="What phone number should we use to confirm your appointment?",
        ),
        SlotDefinition(
            name="customer_email",
            display_name="email",
            prompt="What email address should we send the confirmation to?",
            required=False,
        ),
        SlotDefinition(
            name="notes",
            display_name="notes",
            prompt="Anything we should know before your visit?",
            required=False,
        ),
    )

    def __init__(
        self,
        catalog: ServiceCatalog = DEFAULT_CATALOG,
        require_email: bool = settings.rules.require_email,
    ) -> None:
        self._catalog = catalog
        self._require_email = require_email

    def _is_required(self, defn: SlotDefinition) -> bool:
        return defn.required or (defn.name == "customer_email" and self._require_email)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(d.name for d in self.SLOT_DEFINITIONS if self._is_required(d))

    def get_definition(self, name: str) -> SlotDefinition:
        for defn in self.SLOT_DEFINITIONS:
            if defn.name == name:
                return defn
        raise ValueError(f"Unknown slot: {name}")

    def missing_fields(self, draft: Draft) -> list[SlotDefinition]:
        """Required fields still unset, highest priority first."""
        return [
            defn
            for defn in self.SLOT_DEFINITIONS
            if self._is_required(defn) and not getattr(draft, defn.name)
        ]

    def is_complete(self, draft: Draft) -> bool:
        return not self.missing_fields(draft)

    def next_prompt(self, draft: Draft) -> str:
        """The single question for the highest-priority missing field.

        Date and time are asked together when both are missing.
        """
        missing = self.missing_fields(draft)
        if not missing:
            return self.confirmation_summary(draft)
        names = {defn.name for defn in missing}
        first = missing[0]
        if first.name in ("date", "time") and {"date", "time"} <= names:
            return DATE_AND_TIME_PROMPT
        return first.prompt.format(services=", ".join(self._catalog.names()))

    def confirmation_summary(self, draft: Draft) -> str:
        return build_summary(draft)

    def clear_for_failure(self, draft: Draft, reason: FailureReason) -> Draft:
        """Reset exactly the fields a failed commit implicates, plus confirmation."""
        fields = FAILURE_CLEARS[reason]
        logger.debug("Clearing %s after %s", list(fields) or "nothing", reason.value)
        return draft.cleared(*fields)

    def get_stats(self, draft: Draft) -> dict[str, object]:
        """Completeness figures for logging and the console driver."""
        required = self.required_fields
        filled = [name for name in required if getattr(draft, name)]
        return {
            "slots_filled": len(filled),
            "slots_required": len(required),
            "fill_rate": len(filled) / len(required) if required else 0,
        }
