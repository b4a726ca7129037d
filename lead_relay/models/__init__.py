"""
Models module for data structures and state management in the lead relay.

This module provides structured data models and state management classes for the
application, defining the schemas for inbound webhooks, telephony stream frames,
OpenAI chat messages, and per-sender conversation state.

Key components:
- message_schemas: Pydantic models for the SMS, status, lead and workflow webhooks
  and for the telephony media stream frames.
- openai_schemas: Chat message and extraction result models used with the
  completion API.
- conversation: The conversation phase machine and the ConversationStore that
  owns every sender's state, including the atomic processing flag.

Usage examples:
```python
from lead_relay.models.conversation import ConversationEvent, InMemoryConversationStore
from lead_relay.models.openai_schemas import MessageRole

store = InMemoryConversationStore()
store.get_or_create("+15551234567", name="Ann")

if store.try_set_processing("+15551234567"):
    try:
        store.append_turn("+15551234567", MessageRole.USER, "Hi")
        store.apply_event("+15551234567", ConversationEvent.INBOUND)
    finally:
        store.clear_processing("+15551234567")
```
"""

from lead_relay.models.conversation import (
    ConversationEvent,
    ConversationPhase,
    ConversationState,
    ConversationStore,
    InMemoryConversationStore,
    next_phase,
)
from lead_relay.models.message_schemas import (
    CheckLeadsRequest,
    ErrorEnvelope,
    InboundSmsMessage,
    Lead,
    LeadResult,
    MessageStatusCallback,
    StreamMediaFrame,
    StreamStartFrame,
    WebhookRequest,
    normalize_phone_number,
)
from lead_relay.models.openai_schemas import CallDetails, ChatMessage, MessageRole
