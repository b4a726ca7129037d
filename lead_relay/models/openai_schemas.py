"""
Pydantic models for OpenAI message structures.

This module provides type-safe models for the messages exchanged with the OpenAI
chat completion API and for the structured result of transcript extraction.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Role of a participant in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One entry of a conversation history."""
    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=utcnow)

    def to_openai(self) -> Dict[str, str]:
        """Render the message in the chat completion request format."""
        return {"role": self.role.value, "content": self.content}


class CallDetails(BaseModel):
    """Customer details extracted from a call transcript."""
    model_config = ConfigDict(populate_by_name=True)

    customer_name: str = Field(..., alias="customerName")
    availability: str = Field(..., alias="customerAvailability")
    notes: str = Field(..., alias="specialNotes")


# JSON schema sent with extraction requests; field names match CallDetails aliases
CALL_DETAILS_SCHEMA: Dict[str, Any] = {
    "name": "customer_details_extraction",
    "schema": {
        "type": "object",
        "properties": {
            "customerName": {"type": "string"},
            "customerAvailability": {"type": "string"},
            "specialNotes": {"type": "string"},
        },
        "required": ["customerName", "customerAvailability", "specialNotes"],
    },
}
