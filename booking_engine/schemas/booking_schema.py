"""Draft, reservation, and validation-outcome data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


DRAFT_FIELDS: tuple[str, ...] = (
    "service_name",
    "date",
    "time",
    "customer_name",
    "customer_phone",
    "customer_email",
    "notes",
)


class ExtractedFields(BaseModel):
    """Typed partial result of one extraction stage for one turn.

    Produced both by the NLU collaborator and by the deterministic fallback.
    Every field is optional; an all-empty instance is a valid result.
    """

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    service_name: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM (24h)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    confirmed: Optional[bool] = None

    @field_validator(*DRAFT_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        if not isinstance(value, str):
            value = str(value)
        value = value.strip()
        if not value or value.lower() in ("null", "none", "not provided"):
            return None
        return value

    @field_validator("confirmed", mode="before")
    @classmethod
    def _unset_confirmation(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("", "null", "none", "not provided"):
            return None
        return value

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in (*DRAFT_FIELDS, "confirmed"))


class Draft(BaseModel):
    """Per-conversation working state, accumulated turn by turn."""

    service_name: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM (24h)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    confirmed: Optional[bool] = None

    def cleared(self, *field_names: str) -> "Draft":
        """Copy with the named fields reset and the confirmation reset to unset."""
        updates: dict[str, None] = {name: None for name in field_names}
        updates["confirmed"] = None
        return self.model_copy(update=updates)

    def filled(self) -> dict[str, str]:
        """Non-empty text fields, in declaration order."""
        return {
            name: getattr(self, name)
            for name in DRAFT_FIELDS
            if getattr(self, name)
        }


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    ESCALATED = "escalated"


ACTIVE_STATUSES: frozenset[ReservationStatus] = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
)


class ReservationFields(BaseModel):
    """Everything needed to persist a reservation, already validated."""

    status: ReservationStatus = ReservationStatus.CONFIRMED
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    service_name: str
    start_at: datetime
    end_at: datetime
    notes: Optional[str] = None


class Reservation(ReservationFields):
    """Persisted appointment record."""

    id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FailureReason(str, Enum):
    """Why a commit attempt was refused, in validation order."""

    MISSING_FIELDS = "missing_fields"
    UNKNOWN_SERVICE = "unknown_service"
    INVALID_DATETIME = "invalid_datetime"
    IN_PAST = "in_past"
    LEAD_TIME = "lead_time"
    CLOSED_DAY = "closed_day"
    TOO_EARLY = "too_early"
    TOO_LATE = "too_late"
    CONFLICT = "conflict"
    STORAGE_UNAVAILABLE = "storage_unavailable"


class ValidationFailure(BaseModel):
    """A refused commit with a user-facing reason."""

    code: FailureReason
    reason: str
    conflicting_reservation_id: Optional[str] = None
