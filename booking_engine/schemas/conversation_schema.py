"""Conversation records and the turn interface exposed to transports."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from booking_engine.config import settings
from booking_engine.schemas.booking_schema import Draft


class Speaker(str, Enum):
    AGENT = "agent"
    USER = "user"


class ConversationStatus(str, Enum):
    OPEN = "open"
    ESCALATED = "escalated"  # handed to staff; the engine no longer replies
    CLOSED = "closed"


class DraftState(str, Enum):
    """Where a conversation's Draft sits in the booking lifecycle."""

    COLLECTING = "collecting"
    READY_TO_CONFIRM = "ready_to_confirm"
    COMMITTING = "committing"
    CLOSED = "closed"


class TranscriptTurn(BaseModel):
    """A single entry in a conversation's append-only log."""

    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Conversation(BaseModel):
    """Stored conversation: one live Draft plus the turn log."""

    id: str
    status: ConversationStatus = ConversationStatus.OPEN
    state: DraftState = DraftState.COLLECTING
    draft: Optional[Draft] = Field(default_factory=Draft)
    turns: list[TranscriptTurn] = Field(default_factory=list)
    reservation_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TurnRequest(BaseModel):
    """Inbound turn from the transport layer."""

    conversation_id: Optional[str] = None
    message_text: str = Field(min_length=1, max_length=settings.rules.max_message_length)


class TurnResponse(BaseModel):
    """Reply for one processed turn."""

    conversation_id: str
    reply_text: str
    draft: Optional[Draft] = None
    state: DraftState
    reservation_id: Optional[str] = None
    suggestions: list[datetime] = Field(default_factory=list)
