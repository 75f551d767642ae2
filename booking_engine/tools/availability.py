"""
Availability checks against the reservation store.

check_conflict answers "is this interval free?" and suggest_slots produces
the first N feasible start times on a day. Both are advisory: the store's
create_reservation is what actually prevents double booking.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Optional

from booking_engine.config import settings
from booking_engine.schemas.booking_schema import ACTIVE_STATUSES, Reservation
from booking_engine.tools.business_hours import DEFAULT_HOURS, HoursTable
from booking_engine.tools.reservations import ReservationStore
from booking_engine.tools.rules import check_lead_time, day_bounds
from booking_engine.utils import shop_now, shop_timezone

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """Conflict detection and alternative-slot search for a single shop."""

    def __init__(
        self,
        store: ReservationStore,
        hours: HoursTable = DEFAULT_HOURS,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = shop_now,
        buffer_minutes: int = settings.rules.buffer_minutes,
        min_lead_minutes: int = settings.rules.same_day_min_lead_minutes,
        store_timeout_sec: float = settings.persistence.timeout_sec,
    ) -> None:
        self._store = store
        self._hours = hours
        self._tz = tz or shop_timezone()
        self._clock = clock
        self._buffer_minutes = buffer_minutes
        self._min_lead_minutes = min_lead_minutes
        self._store_timeout_sec = store_timeout_sec

    async def check_conflict(self, start: datetime, end: datetime) -> Optional[Reservation]:
        """Return an active reservation overlapping [start, end), if any."""
        return await asyncio.wait_for(
            self._store.find_overlapping(ACTIVE_STATUSES, start, end),
            timeout=self._store_timeout_sec,
        )

    async def suggest_slots(
        self,
        day: date,
        duration_minutes: int,
        max_count: int = settings.rules.max_suggestions,
        step_minutes: int = settings.rules.slot_step_minutes,
    ) -> list[datetime]:
        """First ``max_count`` feasible start times on ``day``, earliest first.

        A greedy forward scan from opening time in ``step_minutes`` steps. A
        candidate is emitted when service plus buffer ends by closing time,
        it is still in the future, it satisfies the same-day lead time, and
        it does not overlap an active reservation.
        """
        if max_count <= 0 or step_minutes <= 0:
            return []
        bounds = day_bounds(day, self._hours, self._tz)
        if bounds is None:
            return []
        open_at, close_at = bounds

        now = self._clock()
        blocked = timedelta(minutes=duration_minutes + self._buffer_minutes)
        step = timedelta(minutes=step_minutes)
        slots: list[datetime] = []

        candidate = open_at
        while candidate <= close_at and len(slots) < max_count:
            end = candidate + blocked
            if end > close_at:
                break
            if (
                candidate > now
                and check_lead_time(candidate, now, self._min_lead_minutes).ok
                and await self.check_conflict(candidate, end) is None
            ):
                slots.append(candidate)
            candidate += step

        logger.debug("Suggested %d slot(s) on %s", len(slots), day.isoformat())
        return slots
