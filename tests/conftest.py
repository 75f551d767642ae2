"""Shared test fixtures and helpers."""

import asyncio
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from booking_engine.conversation.slot_manager import SlotManager
from booking_engine.conversation.state_machine import DraftStateMachine
from booking_engine.engine import build_engine
from booking_engine.schemas.booking_schema import (
    Draft,
    ExtractedFields,
    Reservation,
    ReservationFields,
    ReservationStatus,
)
from booking_engine.tools.availability import AvailabilityChecker
from booking_engine.tools.booking import CommitEngine
from booking_engine.tools.business_hours import DEFAULT_HOURS
from booking_engine.tools.nlu import ContextHints, NullFieldExtractor
from booking_engine.tools.reservations import InMemoryReservationStore
from booking_engine.tools.services import DEFAULT_CATALOG

TZ = ZoneInfo("America/Toronto")
# Monday; the next day is a Tuesday with hours 09:00-18:00.
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=TZ)
TODAY = "2026-10-19"
TOMORROW = "2026-10-20"


class FixedClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class StaticExtractor:
    """NLU collaborator that returns the same fields for every turn."""

    def __init__(self, **fields) -> None:
        self.fields = ExtractedFields(**fields)
        self.calls: list[tuple[str, Draft, ContextHints]] = []

    async def extract_fields(self, message_text, prior_draft, hints) -> ExtractedFields:
        self.calls.append((message_text, prior_draft, hints))
        return self.fields


class ScriptedExtractor:
    """NLU collaborator keyed by message text; unknown messages yield nothing."""

    def __init__(self, script: dict[str, dict]) -> None:
        self.script = script

    async def extract_fields(self, message_text, prior_draft, hints) -> ExtractedFields:
        return ExtractedFields(**self.script.get(message_text, {}))


class SlowExtractor:
    def __init__(self, delay: float = 1.0) -> None:
        self.delay = delay

    async def extract_fields(self, message_text, prior_draft, hints) -> ExtractedFields:
        await asyncio.sleep(self.delay)
        return ExtractedFields(service_name="Beard Trim")


class RaisingExtractor:
    async def extract_fields(self, message_text, prior_draft, hints) -> ExtractedFields:
        raise RuntimeError("collaborator exploded")


class RecordingNotifier:
    """Stands in for ConfirmationNotifier; records dispatched reservations."""

    def __init__(self) -> None:
        self.dispatched: list[Reservation] = []

    def dispatch(self, reservation: Reservation) -> None:
        self.dispatched.append(reservation)


def make_draft(**overrides) -> Draft:
    """A complete, valid Draft for tomorrow at 14:00."""
    values = {
        "service_name": "Haircut (Standard)",
        "date": TOMORROW,
        "time": "14:00",
        "customer_name": "Sam Patel",
        "customer_phone": "416-555-0199",
    }
    values.update(overrides)
    return Draft(**values)


def make_fields(
    start: datetime,
    end: datetime,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
    name: str = "Existing Customer",
    service: str = "Haircut (Standard)",
    email: Optional[str] = None,
) -> ReservationFields:
    return ReservationFields(
        status=status,
        customer_name=name,
        customer_phone="4165550100",
        customer_email=email,
        service_name=service,
        start_at=start,
        end_at=end,
    )


def at(day: str, hhmm: str) -> datetime:
    """Aware shop-local datetime from YYYY-MM-DD and HH:MM."""
    return datetime.fromisoformat(f"{day}T{hhmm}").replace(tzinfo=TZ)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return InMemoryReservationStore()


@pytest.fixture
def availability(store, clock):
    return AvailabilityChecker(
        store,
        hours=DEFAULT_HOURS,
        tz=TZ,
        clock=clock,
        buffer_minutes=5,
        min_lead_minutes=60,
        store_timeout_sec=1.0,
    )


@pytest.fixture
def commit_engine(store, availability, clock):
    return CommitEngine(
        store,
        availability,
        catalog=DEFAULT_CATALOG,
        hours=DEFAULT_HOURS,
        tz=TZ,
        clock=clock,
        buffer_minutes=5,
        min_lead_minutes=60,
        store_timeout_sec=1.0,
    )


@pytest.fixture
def slot_manager():
    return SlotManager(require_email=False)


@pytest.fixture
def state_machine():
    return DraftStateMachine()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_engine(store, clock, notifier):
    """Factory for a fully wired engine around the shared store and clock."""

    def _make(nlu_client=None):
        return build_engine(
            store=store,
            nlu_client=nlu_client or NullFieldExtractor(),
            tz=TZ,
            clock=clock,
            notifier=notifier,
            require_email=False,
        )

    return _make
