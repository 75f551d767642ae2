"""
Reservation and conversation store.

ReservationStore is the persistence contract the engine depends on. The
in-memory implementation is used by the console driver and tests; a
database-backed store must give create_reservation the same guarantee,
e.g. a serializable transaction or an exclusion constraint on the
reservation interval.
"""

import asyncio
import logging
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Optional, Protocol

from booking_engine.schemas.booking_schema import (
    ACTIVE_STATUSES,
    Draft,
    Reservation,
    ReservationFields,
    ReservationStatus,
)
from booking_engine.schemas.conversation_schema import (
    Conversation,
    ConversationStatus,
    DraftState,
    TranscriptTurn,
)
from booking_engine.tools.rules import intervals_overlap

logger = logging.getLogger(__name__)


class ReservationConflictError(Exception):
    """Raised when a write would overlap an active reservation."""

    def __init__(self, existing: Reservation) -> None:
        super().__init__(
            f"Interval overlaps reservation {existing.id} "
            f"({existing.start_at.isoformat()} - {existing.end_at.isoformat()})"
        )
        self.existing = existing


class ConversationNotFoundError(Exception):
    """Raised when a conversation id does not exist in the store."""


class ReservationStore(Protocol):
    """Persistence collaborator used by the availability checker, commit engine and engine."""

    async def find_overlapping(
        self, statuses: Iterable[ReservationStatus], start: datetime, end: datetime
    ) -> Optional[Reservation]: ...

    async def create_reservation(self, fields: ReservationFields) -> Reservation: ...

    async def list_reservations(self) -> list[Reservation]: ...

    async def create_conversation(self) -> Conversation: ...

    async def get_conversation(self, conversation_id: str) -> Conversation: ...

    async def append_turn(self, conversation_id: str, turn: TranscriptTurn) -> None: ...

    async def update_draft(
        self, conversation_id: str, draft: Draft, state: DraftState
    ) -> None: ...

    async def close_conversation(
        self, conversation_id: str, reservation_id: Optional[str] = None
    ) -> None: ...


class InMemoryReservationStore:
    """Process-local store; the write lock makes check-and-insert atomic."""

    def __init__(self) -> None:
        self._reservations: dict[str, Reservation] = {}
        self._conversations: dict[str, Conversation] = {}
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Reservations
    # ------------------------------------------------------------------ #

    def _first_overlap(
        self, statuses: Iterable[ReservationStatus], start: datetime, end: datetime
    ) -> Optional[Reservation]:
        wanted = set(statuses)
        for reservation in sorted(self._reservations.values(), key=lambda r: r.start_at):
            if reservation.status not in wanted:
                continue
            if intervals_overlap(reservation.start_at, reservation.end_at, start, end):
                return reservation
        return None

    async def find_overlapping(
        self, statuses: Iterable[ReservationStatus], start: datetime, end: datetime
    ) -> Optional[Reservation]:
        return self._first_overlap(statuses, start, end)

    async def create_reservation(self, fields: ReservationFields) -> Reservation:
        """Insert a reservation, refusing any overlap with an active one."""
        async with self._write_lock:
            if fields.status in ACTIVE_STATUSES:
                existing = self._first_overlap(ACTIVE_STATUSES, fields.start_at, fields.end_at)
                if existing is not None:
                    raise ReservationConflictError(existing)
            reservation = Reservation(id=f"RES-{uuid.uuid4().hex[:8].upper()}", **fields.model_dump())
            self._reservations[reservation.id] = reservation
        logger.info(
            "Reservation created: %s for %s at %s",
            reservation.id, reservation.service_name, reservation.start_at.isoformat(),
        )
        return reservation

    async def list_reservations(self) -> list[Reservation]:
        return sorted(self._reservations.values(), key=lambda r: r.start_at)

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        return self._reservations.get(reservation_id)

    # ------------------------------------------------------------------ #
    # Conversations
    # ------------------------------------------------------------------ #

    async def create_conversation(self) -> Conversation:
        conversation = Conversation(id=f"CONV-{uuid.uuid4().hex[:10]}")
        self._conversations[conversation.id] = conversation
        logger.debug("Conversation created: %s", conversation.id)
        return conversation.model_copy(deep=True)

    def _require(self, conversation_id: str) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found") from None

    async def get_conversation(self, conversation_id: str) -> Conversation:
        return self._require(conversation_id).model_copy(deep=True)

    async def append_turn(self, conversation_id: str, turn: TranscriptTurn) -> None:
        self._require(conversation_id).turns.append(turn)

    async def update_draft(self, conversation_id: str, draft: Draft, state: DraftState) -> None:
        conversation = self._require(conversation_id)
        conversation.draft = draft.model_copy()
        conversation.state = state

    async def close_conversation(
        self, conversation_id: str, reservation_id: Optional[str] = None
    ) -> None:
        conversation = self._require(conversation_id)
        conversation.status = ConversationStatus.CLOSED
        conversation.state = DraftState.CLOSED
        conversation.draft = None
        conversation.reservation_id = reservation_id
        logger.info("Conversation closed: %s", conversation_id)
