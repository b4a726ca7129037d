"""
Pydantic models for inbound webhook payloads and telephony stream frames.

This module defines structured data models for the HTTP bodies posted by the
telephony provider and by operators (lead lists, workflow webhooks), and for the
JSON frames exchanged on the telephony media stream, providing type validation
and documentation.
"""

import re
from typing import Any, Dict, List, Optional, Pattern, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Regular expression patterns for validation
NON_DIGIT_PATTERN: Pattern = re.compile(r"\D")
MIN_PHONE_LENGTH = 10


def normalize_phone_number(phone_number: Optional[str]) -> Optional[str]:
    """Prefix a bare number with '+' after stripping non-digits.

    Numbers that already start with '+' are returned unchanged.
    """
    if not phone_number:
        return phone_number
    if phone_number.startswith("+"):
        return phone_number
    return "+" + NON_DIGIT_PATTERN.sub("", phone_number)


# Inbound SMS
class InboundSmsMessage(BaseModel):
    """Model for the inbound message webhook from the telephony provider."""

    model_config = ConfigDict(extra="ignore")

    Body: str = Field(..., description="Message text")
    From: str = Field(..., description="Sender phone number")
    MessageSid: Optional[str] = Field(None, description="Provider message id")

    @field_validator("From")
    def validate_from(cls, v):
        """Validate that the sender is not blank."""
        if not v.strip():
            raise ValueError("From cannot be empty")
        return v.strip()

    @field_validator("MessageSid")
    def validate_message_sid(cls, v):
        """Treat a blank message id as absent."""
        if v is not None and not v.strip():
            return None
        return v


class MessageStatusCallback(BaseModel):
    """Model for the delivery-status callback from the telephony provider."""

    model_config = ConfigDict(extra="allow")

    MessageSid: Optional[str] = None
    MessageStatus: Optional[str] = None
    To: Optional[str] = None
    ErrorCode: Optional[Union[str, int]] = None


# Leads
class Lead(BaseModel):
    """One entry of a check-leads request."""

    phoneNumber: Optional[str] = Field(None, description="Lead phone number")
    name: Optional[str] = Field("", description="Lead display name")

    @field_validator("phoneNumber", mode="before")
    def validate_phone_number(cls, v):
        """Accept numeric phone numbers."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("name")
    def validate_name(cls, v):
        """Normalize a missing name to an empty string."""
        return v or ""


class CheckLeadsRequest(BaseModel):
    """Model for the check-leads request body."""

    leads: List[Lead] = Field(..., description="Leads to contact")


class LeadResult(BaseModel):
    """Outcome of contacting one lead."""

    phoneNumber: str
    name: str
    message: Optional[str] = None
    success: bool
    reason: Optional[str] = None


# Workflow webhook
class WebhookRequest(BaseModel):
    """Model for the multiplexed workflow webhook."""

    route: str = Field(..., description="Sub-operation selector")
    data1: Optional[str] = None
    data2: Optional[str] = None

    @field_validator("route", mode="before")
    def validate_route(cls, v):
        """Accept numeric route selectors."""
        if isinstance(v, int):
            return str(v)
        return v


# Telephony media stream frames
class StreamStartDetails(BaseModel):
    """The 'start' block of a stream start frame."""

    model_config = ConfigDict(extra="ignore")

    streamSid: str = Field(..., description="Stream identifier")
    callSid: Optional[str] = Field(None, description="Call identifier")
    customParameters: Dict[str, Any] = Field(default_factory=dict)


class StreamStartFrame(BaseModel):
    """Model for the 'start' event on the media stream."""

    model_config = ConfigDict(extra="ignore")

    event: str
    streamSid: Optional[str] = None
    start: StreamStartDetails


class StreamMediaPayload(BaseModel):
    """The 'media' block of a media frame."""

    model_config = ConfigDict(extra="ignore")

    payload: str = Field(..., description="Base64-encoded audio")
    timestamp: Optional[str] = None


class StreamMediaFrame(BaseModel):
    """Model for a 'media' event on the media stream (inbound or outbound)."""

    model_config = ConfigDict(extra="ignore")

    event: str = "media"
    streamSid: Optional[str] = None
    media: StreamMediaPayload


class ErrorEnvelope(BaseModel):
    """Error body returned for failed HTTP requests."""

    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
