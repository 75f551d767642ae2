"""
Booking agent: drives one turn of the Draft lifecycle.

Collect -> Confirm -> Commit. Each turn merges the customer's message into
the Draft, classifies the result, and either asks for the next missing
field, reads the booking back for confirmation, or commits it. A refused
commit clears only the fields the failure implicates and offers alternative
start times where they can be computed.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from booking_engine.conversation.extractor import FieldExtractor
from booking_engine.conversation.slot_manager import SlotManager
from booking_engine.conversation.state_machine import (
    DraftStateMachine,
    TransitionTrigger,
    classify_draft,
)
from booking_engine.logging_context import get_conversation_logger
from booking_engine.prompts.prompt_templates import (
    build_booked_reply,
    build_validation_failure_reply,
)
from booking_engine.schemas.booking_schema import (
    Draft,
    FailureReason,
    Reservation,
    ValidationFailure,
)
from booking_engine.schemas.conversation_schema import DraftState
from booking_engine.tools.availability import AvailabilityChecker
from booking_engine.tools.booking import CommitEngine
from booking_engine.tools.notifications import ConfirmationNotifier
from booking_engine.tools.services import DEFAULT_CATALOG, ServiceCatalog
from booking_engine.utils import parse_iso_date

logger = get_conversation_logger(__name__)

# Failures that leave the requested day intact, so same-day alternatives apply.
SUGGEST_ON: frozenset[FailureReason] = frozenset({
    FailureReason.LEAD_TIME,
    FailureReason.TOO_EARLY,
    FailureReason.TOO_LATE,
    FailureReason.CONFLICT,
})


@dataclass
class TurnOutcome:
    """What one processed turn produced."""

    reply_text: str
    state: DraftState
    draft: Optional[Draft] = None
    reservation: Optional[Reservation] = None
    failure: Optional[ValidationFailure] = None
    suggestions: list[datetime] = field(default_factory=list)


class BookingAgent:
    """Slot-filling booking controller with a confirmation gate."""

    def __init__(
        self,
        extractor: FieldExtractor,
        slots: SlotManager,
        availability: AvailabilityChecker,
        commit_engine: CommitEngine,
        notifier: Optional[ConfirmationNotifier] = None,
        catalog: ServiceCatalog = DEFAULT_CATALOG,
    ) -> None:
        self._extractor = extractor
        self._slots = slots
        self._availability = availability
        self._commit_engine = commit_engine
        self._notifier = notifier
        self._catalog = catalog

    async def handle_turn(self, text: str, draft: Draft, state: DraftState) -> TurnOutcome:
        """Merge one message into the Draft and decide what happens next."""
        merged = await self._extractor.extract(text, draft)
        sm = DraftStateMachine(initial=state)
        trigger = classify_draft(merged, self._slots)
        sm.transition(trigger)

        if trigger == TransitionTrigger.FIELDS_MISSING:
            missing = [d.name for d in self._slots.missing_fields(merged)]
            logger.debug("Still missing: %s", missing)
            return TurnOutcome(self._slots.next_prompt(merged), sm.current_state, merged)

        if trigger == TransitionTrigger.FIELDS_COMPLETE:
            return TurnOutcome(self._slots.confirmation_summary(merged), sm.current_state, merged)

        return await self._commit(sm, merged)

    # ------------------------------------------------------------------ #
    # Commit
    # ------------------------------------------------------------------ #

    async def _commit(self, sm: DraftStateMachine, draft: Draft) -> TurnOutcome:
        result = await self._commit_engine.commit(draft)

        if isinstance(result, ValidationFailure):
            sm.transition(TransitionTrigger.COMMIT_FAILED)
            return await self._recover(sm, draft, result)

        sm.transition(TransitionTrigger.COMMIT_SUCCEEDED)
        if self._notifier is not None:
            self._notifier.dispatch(result)
        return TurnOutcome(
            build_booked_reply(result),
            sm.current_state,
            draft=None,
            reservation=result,
        )

    # ------------------------------------------------------------------ #
    # Failure recovery
    # ------------------------------------------------------------------ #

    async def _recover(
        self, sm: DraftStateMachine, draft: Draft, failure: ValidationFailure
    ) -> TurnOutcome:
        logger.info("Commit refused (%s): %s", failure.code.value, failure.reason)
        cleared = self._slots.clear_for_failure(draft, failure.code)
        day, suggestions = await self._alternatives(draft, failure.code)
        reply = build_validation_failure_reply(
            failure.reason,
            self._slots.next_prompt(cleared),
            day=day,
            slots=suggestions,
        )
        return TurnOutcome(
            reply,
            sm.current_state,
            draft=cleared,
            failure=failure,
            suggestions=suggestions,
        )

    async def _alternatives(
        self, draft: Draft, reason: FailureReason
    ) -> tuple[Optional[date], list[datetime]]:
        if reason not in SUGGEST_ON:
            return None, []
        day = parse_iso_date(draft.date)
        minutes = self._catalog.duration(draft.service_name or "")
        if day is None or minutes is None:
            return None, []
        try:
            return day, await self._availability.suggest_slots(day, minutes)
        except (asyncio.TimeoutError, OSError):
            logger.exception("Slot suggestion failed")
            return day, []
