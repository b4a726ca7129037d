"""
Exception hierarchy for the relay.

Per-turn errors (UpstreamError, DeliveryError, RelayError) are contained inside
the turn that raised them and only surface in logs; ConfigurationError is the
only one allowed to stop the process.
"""

from typing import Any, Dict, Optional


class LeadRelayError(Exception):
    pass


class ConfigurationError(LeadRelayError):
    """A mandatory credential or setting is missing or invalid."""


class InvalidPayloadError(LeadRelayError):
    """An inbound payload is missing a required field or is malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UpstreamError(LeadRelayError):
    """The completion provider failed or returned an unusable payload."""


class ExtractionError(UpstreamError):
    """A structured extraction result could not be parsed."""


class DeliveryError(LeadRelayError):
    """The telephony provider rejected a send-message request."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RelayError(LeadRelayError):
    """A relay webhook post timed out or returned a non-success status."""


class InvalidTransitionError(LeadRelayError, ValueError):
    pass
