"""Service catalog: canonical service names, durations, and keyword aliases."""

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Optional

logger = logging.getLogger(__name__)

SERVICE_DURATIONS: dict[str, int] = {
    "Haircut (Standard)": 30,
    "Beard Trim": 15,
    "Wash & Style": 15,
    "Head Shave": 45,
    "Kids Haircut": 25,
    "Buzz Cut": 15,
}

# Checked in order, most specific first: "kids haircut" before "haircut",
# "haircut" before the bare "wash" and "shave".
SERVICE_ALIASES: tuple[tuple[str, str], ...] = (
    ("kids haircut", "Kids Haircut"),
    ("kid's haircut", "Kids Haircut"),
    ("kids", "Kids Haircut"),
    ("child", "Kids Haircut"),
    ("buzz", "Buzz Cut"),
    ("head shave", "Head Shave"),
    ("beard", "Beard Trim"),
    ("haircut", "Haircut (Standard)"),
    ("hair cut", "Haircut (Standard)"),
    ("wash", "Wash & Style"),
    ("shave", "Head Shave"),
)


class ServiceCatalog(Mapping[str, int]):
    """Immutable mapping from canonical service name to duration in minutes."""

    def __init__(self, durations: Mapping[str, int]) -> None:
        for name, minutes in durations.items():
            if minutes <= 0:
                raise ValueError(f"Service '{name}' must have a positive duration, got {minutes}")
        self._durations = MappingProxyType(dict(durations))
        self._by_lower = {name.lower(): name for name in self._durations}

    def __getitem__(self, name: str) -> int:
        return self._durations[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._durations)

    def __len__(self) -> int:
        return len(self._durations)

    def canonical_name(self, name: str) -> Optional[str]:
        """Exact, case-insensitive lookup of a canonical service name."""
        return self._by_lower.get(name.strip().lower())

    def duration(self, name: str) -> Optional[int]:
        """Duration in minutes, or None if the service is not offered."""
        canonical = self.canonical_name(name)
        if canonical is None:
            return None
        return self._durations[canonical]

    def names(self) -> list[str]:
        return list(self._durations)


DEFAULT_CATALOG = ServiceCatalog(SERVICE_DURATIONS)


def match_service(query: str, catalog: ServiceCatalog = DEFAULT_CATALOG) -> Optional[str]:
    """Match free text to a canonical service name. Returns None if no match."""
    normalized = query.lower().strip()
    if not normalized:
        return None
    exact = catalog.canonical_name(normalized)
    if exact:
        return exact
    for name in catalog:
        if name.lower() in normalized:
            return name
    for alias, name in SERVICE_ALIASES:
        if alias in normalized and name in catalog:
            logger.debug("Service alias '%s' matched %s", alias, name)
            return name
    return None


def get_all_services(catalog: ServiceCatalog = DEFAULT_CATALOG) -> list[dict]:
    """Return all services with their durations."""
    return [{"name": name, "duration_minutes": minutes} for name, minutes in catalog.items()]
