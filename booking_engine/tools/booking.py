"""
Commit engine: final validation and persistence of a confirmed Draft.

Every rule is re-checked at commit time, independently of any earlier
availability check, in a fixed order that decides which single reason is
reported when several rules fail at once:

    required fields -> service -> date/time parse -> not past
    -> same-day lead time -> business hours -> conflict
"""

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional, Union

from booking_engine.config import settings
from booking_engine.schemas.booking_schema import (
    Draft,
    FailureReason,
    Reservation,
    ReservationFields,
    ReservationStatus,
    ValidationFailure,
)
from booking_engine.tools.availability import AvailabilityChecker
from booking_engine.tools.business_hours import DEFAULT_HOURS, HoursTable
from booking_engine.tools.reservations import ReservationConflictError, ReservationStore
from booking_engine.tools.rules import (
    check_business_hours,
    check_lead_time,
    parse_start,
    reservation_end,
    service_duration,
)
from booking_engine.tools.services import DEFAULT_CATALOG, ServiceCatalog
from booking_engine.utils import normalize_phone, shop_now, shop_timezone

logger = logging.getLogger(__name__)

CommitResult = Union[Reservation, ValidationFailure]

CONFLICT_REASON = "That time is already taken. Please choose another time."


class CommitEngine:
    """Validates a Draft against every booking rule and persists it."""

    def __init__(
        self,
        store: ReservationStore,
        availability: AvailabilityChecker,
        catalog: ServiceCatalog = DEFAULT_CATALOG,
        hours: HoursTable = DEFAULT_HOURS,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = shop_now,
        buffer_minutes: int = settings.rules.buffer_minutes,
        min_lead_minutes: int = settings.rules.same_day_min_lead_minutes,
        required_fields: tuple[str, ...] = ("service_name", "date", "time", "customer_name", "customer_phone"),
        store_timeout_sec: float = settings.persistence.timeout_sec,
    ) -> None:
        self._store = store
        self._availability = availability
        self._catalog = catalog
        self._hours = hours
        self._tz = tz or shop_timezone()
        self._clock = clock
        self._buffer_minutes = buffer_minutes
        self._min_lead_minutes = min_lead_minutes
        self._required_fields = required_fields
        self._store_timeout_sec = store_timeout_sec

    async def commit(self, draft: Draft) -> CommitResult:
        """Return the persisted Reservation, or the first rule the Draft fails."""
        missing = [name for name in self._required_fields if not getattr(draft, name)]
        if missing:
            return ValidationFailure(
                code=FailureReason.MISSING_FIELDS,
                reason="Missing required booking info.",
            )

        service = self._catalog.canonical_name(draft.service_name or "")
        minutes = service_duration(service, self._catalog) if service else None
        if service is None or minutes is None:
            return ValidationFailure(
                code=FailureReason.UNKNOWN_SERVICE,
                reason="That service is not supported.",
            )

        start = parse_start(draft.date, draft.time, self._tz)
        if start is None:
            return ValidationFailure(
                code=FailureReason.INVALID_DATETIME,
                reason="Invalid date/time format.",
            )
        end = reservation_end(start, minutes, self._buffer_minutes)

        now = self._clock()
        if start <= now:
            return ValidationFailure(
                code=FailureReason.IN_PAST,
                reason="That time is in the past. Pick a future time.",
            )

        for rule in (
            check_lead_time(start, now, self._min_lead_minutes),
            check_business_hours(start, end, self._hours),
        ):
            if not rule.ok:
                return ValidationFailure(code=rule.code, reason=rule.reason)

        try:
            overlap = await self._availability.check_conflict(start, end)
        except (asyncio.TimeoutError, OSError):
            logger.exception("Conflict check failed")
            return self._storage_unavailable()
        if overlap is not None:
            return ValidationFailure(
                code=FailureReason.CONFLICT,
                reason=CONFLICT_REASON,
                conflicting_reservation_id=overlap.id,
            )

        fields = ReservationFields(
            status=ReservationStatus.CONFIRMED,
            customer_name=draft.customer_name,
            customer_phone=normalize_phone(draft.customer_phone),
            customer_email=draft.customer_email,
            service_name=service,
            start_at=start,
            end_at=end,
            notes=draft.notes,
        )
        try:
            reservation = await asyncio.wait_for(
                self._store.create_reservation(fields), timeout=self._store_timeout_sec
            )
        except ReservationConflictError as exc:
            # Another conversation committed between our check and the write.
            logger.info("Commit lost race to %s", exc.existing.id)
            return ValidationFailure(
                code=FailureReason.CONFLICT,
                reason=CONFLICT_REASON,
                conflicting_reservation_id=exc.existing.id,
            )
        except (asyncio.TimeoutError, OSError):
            logger.exception("Reservation write failed")
            return self._storage_unavailable()

        logger.info("Booking committed: %s (%s)", reservation.id, service)
        return reservation

    @staticmethod
    def _storage_unavailable() -> ValidationFailure:
        return ValidationFailure(
            code=FailureReason.STORAGE_UNAVAILABLE,
            reason="We couldn't save your booking just now.",
        )
