from booking_engine.conversation.extractor import FieldExtractor, merge_fields
from booking_engine.conversation.slot_manager import SlotManager
from booking_engine.conversation.state_machine import (
    DraftStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
)

__all__ = [
    "DraftStateMachine",
    "InvalidTransitionError",
    "TransitionTrigger",
    "SlotManager",
    "FieldExtractor",
    "merge_fields",
]
