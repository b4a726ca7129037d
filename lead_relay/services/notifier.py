"""
Outbound delivery of assistant replies and relay events.

Exactly one notifier is active per process, chosen by DELIVERY_MODE:

- DirectNotifier sends SMS replies through the Twilio REST API. A rejected send
  raises DeliveryError and is never retried, because a retry after a partial
  success would text the user twice.
- RelayNotifier forwards every reply and event to a single external workflow
  endpoint, which is responsible for contacting the user. Posts carry a hard
  timeout and failures are logged and swallowed.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient

from lead_relay.config.constants import (
    DEFAULT_RELAY_TIMEOUT,
    DELIVERY_MODE_DIRECT,
    DELIVERY_MODE_RELAY,
    LOGGER_NAME,
    RELAY_EVENT_SMS_REPLY,
)
from lead_relay.config.settings import Settings
from lead_relay.exceptions import ConfigurationError, DeliveryError, RelayError

logger = logging.getLogger(LOGGER_NAME)


class OutboundNotifier(ABC):
    """Delivers assistant utterances and conversation events."""

    mode: str = ""

    @abstractmethod
    async def send_reply(
        self, to: str, body: str, context: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Deliver an assistant reply to a user.

        Args:
            to: Recipient phone number
            body: Message text
            context: Extra fields describing the turn (relay mode forwards them)

        Returns:
            A delivery receipt id when the provider returns one
        """

    @abstractmethod
    async def publish(self, event: str, payload: Dict[str, Any]) -> bool:
        """Forward an event to the external workflow, if one is configured."""

    async def close(self) -> None:
        pass


class DirectNotifier(OutboundNotifier):
    """Sends replies straight to the telephony provider."""

    mode = DELIVERY_MODE_DIRECT

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        client: Optional[TwilioClient] = None,
    ):
        if not from_number:
            raise ConfigurationError("Direct delivery requires a sender phone number")
        self.from_number = from_number
        self.client = client or TwilioClient(account_sid, auth_token)

    async def send_reply(
        self, to: str, body: str, context: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Send an SMS through Twilio.

        Raises:
            DeliveryError: If Twilio rejects the request
        """
        try:
            # The Twilio REST client is blocking; keep it off the event loop
            message = await asyncio.to_thread(
                self.client.messages.create,
                to=to,
                from_=self.from_number,
                body=body,
            )
        except TwilioRestException as e:
            raise DeliveryError(
                f"Failed to send SMS to {to}: {e.msg}", status=e.status
            ) from e

        logger.info(f"SMS sent to {to} (sid: {message.sid})")
        return message.sid

    async def publish(self, event: str, payload: Dict[str, Any]) -> bool:
        logger.debug(f"No relay endpoint in direct mode; {event} event not forwarded")
        return False


class RelayNotifier(OutboundNotifier):
    """Forwards replies and events to a single external workflow endpoint."""

    mode = DELIVERY_MODE_RELAY

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_RELAY_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url:
            raise ConfigurationError("Relay delivery requires a webhook URL")
        self.url = url
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def build_envelope(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": payload,
        }

    async def _post(self, envelope: Dict[str, Any]) -> None:
        try:
            response = await self.client.post(
                self.url,
                json=envelope,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise RelayError(f"Relay post timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise RelayError(f"Relay post failed: {e}") from e

        if response.is_error:
            raise RelayError(
                f"Relay error: {response.status_code} {response.reason_phrase} {response.text[:200]}"
            )

    async def publish(self, event: str, payload: Dict[str, Any]) -> bool:
        envelope = self.build_envelope(event, payload)
        logger.info(f"Sending {event} event to relay webhook")
        try:
            await self._post(envelope)
        except RelayError as e:
            logger.warning(f"Relay delivery failed for {event}: {e}")
            return False
        return True

    async def send_reply(
        self, to: str, body: str, context: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        payload = {"userPhone": to, "aiResponse": body, **(context or {})}
        event = payload.pop("event", RELAY_EVENT_SMS_REPLY)
        await self.publish(event, payload)
        return None

    async def close(self) -> None:
        await self.client.aclose()


def create_notifier(settings: Settings) -> OutboundNotifier:
    """Build the single notifier for the configured delivery mode."""
    if settings.delivery_mode == DELIVERY_MODE_RELAY:
        logger.info(f"Delivery mode: relay ({settings.relay_webhook_url})")
        return RelayNotifier(settings.relay_webhook_url, timeout=settings.relay_timeout)

    logger.info("Delivery mode: direct (Twilio)")
    return DirectNotifier(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_phone_number,
    )
