"""
Finite state machine for the booking Draft lifecycle.

Four states and explicit transitions with triggers. The trigger for a turn
is derived from the freshly merged Draft, so a Draft that is confirmed but
incomplete can never reach COMMITTING.

Usage:
    sm = DraftStateMachine()
    sm.transition(TransitionTrigger.FIELDS_COMPLETE)
    assert sm.current_state == DraftState.READY_TO_CONFIRM
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from booking_engine.conversation.slot_manager import SlotManager
from booking_engine.schemas.booking_schema import Draft
from booking_engine.schemas.conversation_schema import DraftState

logger = logging.getLogger(__name__)


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""
    FIELDS_MISSING = "fields_missing"
    FIELDS_COMPLETE = "fields_complete"
    CALLER_CONFIRMED = "caller_confirmed"
    COMMIT_SUCCEEDED = "commit_succeeded"
    COMMIT_FAILED = "commit_failed"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: DraftState
    to_state: DraftState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: DraftState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


def classify_draft(draft: Draft, slots: SlotManager) -> TransitionTrigger:
    """Which trigger a merged Draft fires on the current turn."""
    if not slots.is_complete(draft):
        return TransitionTrigger.FIELDS_MISSING
    if draft.confirmed is True:
        return TransitionTrigger.CALLER_CONFIRMED
    return TransitionTrigger.FIELDS_COMPLETE


class DraftStateMachine:
    """
    Deterministic state machine for one conversation's Draft.

    Every transition must be explicitly defined; anything else is rejected
    with an error listing the triggers allowed from the current state.
    """

    TRANSITIONS: list[Transition] = [
        # --- Collecting ---
        Transition(DraftState.COLLECTING, DraftState.COLLECTING,
                   TransitionTrigger.FIELDS_MISSING),
        Transition(DraftState.COLLECTING, DraftState.READY_TO_CONFIRM,
                   TransitionTrigger.FIELDS_COMPLETE),
        Transition(DraftState.COLLECTING, DraftState.COMMITTING,
                   TransitionTrigger.CALLER_CONFIRMED),

        # --- Confirmation gate ---
        Transition(DraftState.READY_TO_CONFIRM, DraftState.READY_TO_CONFIRM,
                   TransitionTrigger.FIELDS_COMPLETE),
        Transition(DraftState.READY_TO_CONFIRM, DraftState.COLLECTING,
                   TransitionTrigger.FIELDS_MISSING),
        Transition(DraftState.READY_TO_CONFIRM, DraftState.COMMITTING,
                   TransitionTrigger.CALLER_CONFIRMED),

        # --- Commit result ---
        Transition(DraftState.COMMITTING, DraftState.CLOSED,
                   TransitionTrigger.COMMIT_SUCCEEDED),
        Transition(DraftState.COMMITTING, DraftState.COLLECTING,
                   TransitionTrigger.COMMIT_FAILED),
    ]

    def __init__(self, initial: DraftState = DraftState.COLLECTING) -> None:
        if initial == DraftState.COMMITTING:
            # A turn interrupted mid-commit resumes by re-evaluating the Draft.
            initial = DraftState.READY_TO_CONFIRM
        self._current_state = initial
        self._history: list[StateEntry] = [
            StateEntry(state=initial, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> DraftState:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> DraftState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new Draft state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Draft transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state == DraftState.CLOSED
