"""
Conversation state management for SMS and voice conversations.

This module provides the ConversationState model, the explicit phase machine that
drives a conversation (new -> awaiting_reply -> terminal), and the
ConversationStore abstraction that owns every sender's state. The store is the
single source of truth consulted and mutated by the orchestration layer; callers
always receive deep copies, and every mutation is a single-key
read-modify-write performed under the store's lock.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from lead_relay.exceptions import InvalidTransitionError
from lead_relay.models.openai_schemas import ChatMessage, MessageRole, utcnow


class ConversationPhase(str, Enum):
    """Where a conversation stands."""
    NEW = "new"
    AWAITING_REPLY = "awaiting_reply"
    TERMINAL = "terminal"


class ConversationEvent(str, Enum):
    """Events that move a conversation between phases."""
    INBOUND = "inbound"
    REPLY_SENT = "reply_sent"
    FINISHED = "finished"
    RESET = "reset"


_TRANSITIONS: Dict[ConversationPhase, Dict[ConversationEvent, ConversationPhase]] = {
    ConversationPhase.NEW: {
        ConversationEvent.INBOUND: ConversationPhase.NEW,
        ConversationEvent.REPLY_SENT: ConversationPhase.AWAITING_REPLY,
        ConversationEvent.FINISHED: ConversationPhase.TERMINAL,
        ConversationEvent.RESET: ConversationPhase.NEW,
    },
    ConversationPhase.AWAITING_REPLY: {
        ConversationEvent.INBOUND: ConversationPhase.NEW,
        ConversationEvent.REPLY_SENT: ConversationPhase.AWAITING_REPLY,
        ConversationEvent.FINISHED: ConversationPhase.TERMINAL,
        ConversationEvent.RESET: ConversationPhase.NEW,
    },
    ConversationPhase.TERMINAL: {
        ConversationEvent.FINISHED: ConversationPhase.TERMINAL,
        ConversationEvent.RESET: ConversationPhase.NEW,
    },
}


def next_phase(phase: ConversationPhase, event: ConversationEvent) -> ConversationPhase:
    """
    Return the phase reached by applying an event.

    Raises:
        InvalidTransitionError: If the event is not allowed in the given phase
    """
    try:
        return _TRANSITIONS[phase][event]
    except KeyError:
        raise InvalidTransitionError(
            f"Event {event.value} is not allowed in phase {phase.value}"
        ) from None


class ConversationState(BaseModel):
    """Per-sender conversation state."""

    conversation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sender_id: str
    name: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)
    phase: ConversationPhase = ConversationPhase.NEW
    step: int = 0
    processing: bool = False
    thread_ref: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def waiting_for_reply(self) -> bool:
        return self.phase == ConversationPhase.AWAITING_REPLY

    def summary(self) -> dict:
        """Dashboard listing entry for this conversation."""
        return {
            "id": self.conversation_id,
            "phone_number": self.sender_id,
            "name": self.name,
            "phase": self.phase.value,
            "step": self.step,
            "thread_id": self.thread_ref,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def detail(self) -> dict:
        """Dashboard detail view including the message history."""
        return {
            **self.summary(),
            "waiting_for_reply": self.waiting_for_reply,
            "messages": [
                {
                    "sender": message.role.value,
                    "content": message.content,
                    "created_at": message.created_at.isoformat(),
                }
                for message in self.history
            ],
        }


class ConversationStore(ABC):
    """Storage interface for conversation state, keyed by sender id."""

    @abstractmethod
    def get(self, sender_id: str) -> Optional[ConversationState]:
        ...

    @abstractmethod
    def get_by_id(self, conversation_id: str) -> Optional[ConversationState]:
        ...

    @abstractmethod
    def get_or_create(self, sender_id: str, name: Optional[str] = None) -> ConversationState:
        ...

    @abstractmethod
    def list_conversations(self) -> List[ConversationState]:
        ...

    @abstractmethod
    def append_turn(self, sender_id: str, role: MessageRole, content: str) -> ChatMessage:
        ...

    @abstractmethod
    def history(self, sender_id: str) -> List[ChatMessage]:
        ...

    @abstractmethod
    def try_set_processing(self, sender_id: str) -> bool:
        ...

    @abstractmethod
    def clear_processing(self, sender_id: str) -> None:
        ...

    @abstractmethod
    def apply_event(self, sender_id: str, event: ConversationEvent) -> ConversationState:
        ...

    @abstractmethod
    def reset(self, sender_id: str) -> ConversationState:
        ...

    @abstractmethod
    def set_thread_ref(self, sender_id: str, thread_ref: Optional[str]) -> None:
        ...


class InMemoryConversationStore(ConversationStore):
    """
    Process-local conversation store.

    State lives in a dictionary guarded by a re-entrant lock, so every
    operation is atomic with respect to concurrent callers for the same key.
    Nothing survives a restart.
    """

    def __init__(self):
        self._conversations: Dict[str, ConversationState] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._conversations)

    def _require(self, sender_id: str) -> ConversationState:
        state = self._conversations.get(sender_id)
        if state is None:
            raise KeyError(f"No conversation for sender: {sender_id}")
        return state

    def get(self, sender_id: str) -> Optional[ConversationState]:
        with self._lock:
            state = self._conversations.get(sender_id)
            return state.model_copy(deep=True) if state else None

    def get_by_id(self, conversation_id: str) -> Optional[ConversationState]:
        with self._lock:
            for state in self._conversations.values():
                if state.conversation_id == conversation_id:
                    return state.model_copy(deep=True)
            return None

    def get_or_create(self, sender_id: str, name: Optional[str] = None) -> ConversationState:
        """
        Return the sender's conversation, creating an empty one if needed.

        A name passed for an existing conversation only fills in a missing one.
        """
        with self._lock:
            state = self._conversations.get(sender_id)
            if state is None:
                state = ConversationState(sender_id=sender_id, name=name or None)
                self._conversations[sender_id] = state
            elif name and not state.name:
                state.name = name
                state.updated_at = utcnow()
            return state.model_copy(deep=True)

    def list_conversations(self) -> List[ConversationState]:
        """All conversations, most recently updated first."""
        with self._lock:
            states = [state.model_copy(deep=True) for state in self._conversations.values()]
        return sorted(states, key=lambda state: state.updated_at, reverse=True)

    def append_turn(self, sender_id: str, role: MessageRole, content: str) -> ChatMessage:
        with self._lock:
            state = self._require(sender_id)
            message = ChatMessage(role=role, content=content)
            state.history.append(message)
            state.updated_at = message.created_at
            return message.model_copy()

    def history(self, sender_id: str) -> List[ChatMessage]:
        with self._lock:
            state = self._conversations.get(sender_id)
            if state is None:
                return []
            return [message.model_copy() for message in state.history]

    def try_set_processing(self, sender_id: str) -> bool:
        """
        Atomically claim the sender's processing flag.

        Returns:
            True if the caller now owns the turn, False if another turn is in flight
        """
        with self._lock:
            state = self._conversations.get(sender_id)
            if state is None:
                state = ConversationState(sender_id=sender_id)
                self._conversations[sender_id] = state
            if state.processing:
                return False
            state.processing = True
            return True

    def clear_processing(self, sender_id: str) -> None:
        with self._lock:
            state = self._conversations.get(sender_id)
            if state is not None:
                state.processing = False

    def apply_event(self, sender_id: str, event: ConversationEvent) -> ConversationState:
        """
        Move the sender's conversation to its next phase.

        A reply_sent event also advances the step counter. A reset event
        clears history, step and thread reference while keeping the name.

        Raises:
            InvalidTransitionError: If the event is not allowed in the current phase
        """
        with self._lock:
            state = self._require(sender_id)
            state.phase = next_phase(state.phase, event)
            if event == ConversationEvent.REPLY_SENT:
                state.step += 1
            elif event == ConversationEvent.RESET:
                state.history = []
                state.step = 0
                state.thread_ref = None
            state.updated_at = utcnow()
            return state.model_copy(deep=True)

    def reset(self, sender_id: str) -> ConversationState:
        return self.apply_event(sender_id, ConversationEvent.RESET)

    def set_thread_ref(self, sender_id: str, thread_ref: Optional[str]) -> None:
        with self._lock:
            state = self._require(sender_id)
            state.thread_ref = thread_ref
            state.updated_at = utcnow()
