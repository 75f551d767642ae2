"""Weekly opening hours, in shop-local wall-clock time."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, time
from types import MappingProxyType
from typing import Optional

WEEKDAYS: tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


@dataclass(frozen=True)
class OpeningHours:
    """Open/close pair for one weekday."""

    open: time
    close: time

    def __post_init__(self) -> None:
        if not self.open < self.close:
            raise ValueError(
                f"Opening time {self.open:%H:%M} must be before closing time {self.close:%H:%M}"
            )

    @classmethod
    def parse(cls, open_hhmm: str, close_hhmm: str) -> "OpeningHours":
        return cls(time.fromisoformat(open_hhmm), time.fromisoformat(close_hhmm))


class HoursTable:
    """Weekday -> OpeningHours, with None meaning closed all day."""

    def __init__(self, hours: Mapping[str, Optional[OpeningHours]]) -> None:
        unknown = set(hours) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday(s) in hours table: {sorted(unknown)}")
        self._hours = MappingProxyType({day: hours.get(day) for day in WEEKDAYS})

    def for_weekday(self, weekday: int) -> Optional[OpeningHours]:
        """Hours for a Python weekday index (Monday == 0)."""
        return self._hours[WEEKDAYS[weekday]]

    def for_date(self, day: date) -> Optional[OpeningHours]:
        return self.for_weekday(day.weekday())

    def is_closed(self, day: date) -> bool:
        return self.for_date(day) is None

    def describe(self) -> list[str]:
        lines = []
        for day in WEEKDAYS:
            entry = self._hours[day]
            if entry is None:
                lines.append(f"{day.title()}: closed")
            else:
                lines.append(f"{day.title()}: {entry.open:%H:%M}-{entry.close:%H:%M}")
        return lines


DEFAULT_HOURS = HoursTable({
    "monday": OpeningHours.parse("09:00", "18:00"),
    "tuesday": OpeningHours.parse("09:00", "18:00"),
    "wednesday": OpeningHours.parse("09:00", "18:00"),
    "thursday": OpeningHours.parse("10:00", "20:00"),
    "friday": OpeningHours.parse("10:00", "20:00"),
    "saturday": OpeningHours.parse("09:00", "16:00"),
    "sunday": None,
})
