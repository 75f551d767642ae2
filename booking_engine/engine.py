"""
Turn interface for the booking engine.

Transports hand each inbound message to BookingEngine.handle_turn. Turns for
one conversation run one at a time in submission order; different
conversations proceed concurrently and share nothing but the store.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, tzinfo
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from pydantic import ValidationError

from booking_engine.agents.booking_agent import BookingAgent, TurnOutcome
from booking_engine.config import settings
from booking_engine.conversation.extractor import FieldExtractor
from booking_engine.conversation.slot_manager import SlotManager
from booking_engine.logging_context import get_conversation_logger, set_conversation_id
from booking_engine.schemas.booking_schema import Draft
from booking_engine.schemas.conversation_schema import (
    Conversation,
    ConversationStatus,
    Speaker,
    TranscriptTurn,
    TurnRequest,
    TurnResponse,
)
from booking_engine.tools.availability import AvailabilityChecker
from booking_engine.tools.booking import CommitEngine
from booking_engine.tools.business_hours import DEFAULT_HOURS, HoursTable
from booking_engine.tools.nlu import FieldExtractorClient, build_default_extractor_client
from booking_engine.tools.notifications import ConfirmationNotifier
from booking_engine.tools.reservations import (
    ConversationNotFoundError,
    InMemoryReservationStore,
    ReservationStore,
)
from booking_engine.tools.services import DEFAULT_CATALOG, ServiceCatalog
from booking_engine.utils import shop_now, shop_timezone

logger = get_conversation_logger(__name__)

T = TypeVar("T")

__all__ = [
    "BookingEngine",
    "ConversationClosedError",
    "ConversationNotFoundError",
    "InvalidTurnError",
    "build_engine",
]


class InvalidTurnError(ValueError):
    """Raised when an inbound turn is malformed (empty, blank or too long)."""


class ConversationClosedError(Exception):
    """Raised when a turn targets a conversation that is no longer open."""


class BookingEngine:
    """Routes turns to the booking agent under a per-conversation lock."""

    def __init__(
        self,
        store: ReservationStore,
        agent: BookingAgent,
        store_timeout_sec: float = settings.persistence.timeout_sec,
    ) -> None:
        self._store = store
        self._agent = agent
        self._store_timeout_sec = store_timeout_sec
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def store(self) -> ReservationStore:
        return self._store

    @asynccontextmanager
    async def _serialised(self, conversation_id: str) -> AsyncIterator[None]:
        """Hold the conversation's lock; the entry is dropped once no turn holds or awaits it."""
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[conversation_id] -= 1
            if not self._lock_users[conversation_id]:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    async def _bounded(self, call: Awaitable[T]) -> T:
        return await asyncio.wait_for(call, timeout=self._store_timeout_sec)

    # ------------------------------------------------------------------ #
    # Turn interface
    # ------------------------------------------------------------------ #

    async def handle_turn(
        self,
        request: Union[TurnRequest, dict[str, Any], None] = None,
        *,
        conversation_id: Optional[str] = None,
        message_text: Optional[str] = None,
    ) -> TurnResponse:
        """
        Process one customer message.

        Accepts a TurnRequest, its dict form, or the two fields as keywords.
        A missing conversation_id starts a new conversation.

        Raises:
            InvalidTurnError: The message is empty, blank or too long.
            ConversationNotFoundError: The conversation id is unknown.
            ConversationClosedError: The conversation is closed or escalated.
        """
        turn = self._validate(request, conversation_id, message_text)

        if turn.conversation_id is None:
            conversation = await self._bounded(self._store.create_conversation())
            conversation_id = conversation.id
        else:
            conversation_id = turn.conversation_id

        async with self._serialised(conversation_id):
            set_conversation_id(conversation_id)
            return await self._process(conversation_id, turn.message_text)

    @staticmethod
    def _validate(
        request: Union[TurnRequest, dict[str, Any], None],
        conversation_id: Optional[str],
        message_text: Optional[str],
    ) -> TurnRequest:
        if isinstance(request, TurnRequest):
            payload: Any = request.model_dump()
        elif request is not None:
            payload = request
        else:
            payload = {"conversation_id": conversation_id, "message_text": message_text}
        try:
            turn = TurnRequest.model_validate(payload)
        except ValidationError as exc:
            raise InvalidTurnError(str(exc)) from exc
        if not turn.message_text.strip():
            raise InvalidTurnError("message_text must not be blank")
        return turn

    async def _process(self, conversation_id: str, text: str) -> TurnResponse:
        conversation = await self._bounded(self._store.get_conversation(conversation_id))
        if conversation.status != ConversationStatus.OPEN:
            raise ConversationClosedError(
                f"Conversation {conversation_id} is {conversation.status.value}"
                + (f" (booking {conversation.reservation_id})" if conversation.reservation_id else "")
            )

        await self._bounded(self._store.append_turn(
            conversation_id, TranscriptTurn(speaker=Speaker.USER, text=text)
        ))

        outcome = await self._agent.handle_turn(
            text, conversation.draft or Draft(), conversation.state
        )
        logger.info(
            "Turn processed: %s -> %s", conversation.state.value, outcome.state.value
        )

        if outcome.reservation is not None:
            await self._finish(conversation, outcome)
        else:
            await self._bounded(self._store.update_draft(
                conversation_id, outcome.draft or Draft(), outcome.state
            ))
            await self._bounded(self._store.append_turn(
                conversation_id, TranscriptTurn(speaker=Speaker.AGENT, text=outcome.reply_text)
            ))

        return TurnResponse(
            conversation_id=conversation_id,
            reply_text=outcome.reply_text,
            draft=outcome.draft,
            state=outcome.state,
            reservation_id=outcome.reservation.id if outcome.reservation else None,
            suggestions=outcome.suggestions,
        )

    async def _finish(self, conversation: Conversation, outcome: TurnOutcome) -> None:
        """Close a conversation whose booking committed. The booking stands regardless."""
        try:
            await self._bounded(self._store.append_turn(
                conversation.id, TranscriptTurn(speaker=Speaker.AGENT, text=outcome.reply_text)
            ))
            await self._bounded(self._store.close_conversation(
                conversation.id, outcome.reservation.id
            ))
        except (asyncio.TimeoutError, OSError, ConversationNotFoundError):
            logger.exception(
                "Could not close conversation after booking %s", outcome.reservation.id
            )


def build_engine(
    store: Optional[ReservationStore] = None,
    nlu_client: Optional[FieldExtractorClient] = None,
    catalog: ServiceCatalog = DEFAULT_CATALOG,
    hours: HoursTable = DEFAULT_HOURS,
    tz: Optional[tzinfo] = None,
    clock: Callable[[], datetime] = shop_now,
    notifier: Optional[ConfirmationNotifier] = None,
    require_email: bool = settings.rules.require_email,
) -> BookingEngine:
    """Wire a BookingEngine from settings, overriding any collaborator given."""
    store = store if store is not None else InMemoryReservationStore()
    tz = tz or shop_timezone()
    slots = SlotManager(catalog=catalog, require_email=require_email)
    availability = AvailabilityChecker(store, hours=hours, tz=tz, clock=clock)
    commit_engine = CommitEngine(
        store,
        availability,
        catalog=catalog,
        hours=hours,
        tz=tz,
        clock=clock,
        required_fields=slots.required_fields,
    )
    extractor = FieldExtractor(
        nlu_client if nlu_client is not None else build_default_extractor_client(),
        catalog=catalog,
        clock=clock,
    )
    agent = BookingAgent(
        extractor,
        slots,
        availability,
        commit_engine,
        notifier=notifier if notifier is not None else ConfirmationNotifier(),
        catalog=catalog,
    )
    return BookingEngine(store, agent)
