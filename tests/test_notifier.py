import json
from unittest.mock import MagicMock

import httpx
import pytest
from twilio.base.exceptions import TwilioRestException

from lead_relay.config.settings import Settings
from lead_relay.exceptions import ConfigurationError, DeliveryError
from lead_relay.services.notifier import (
    DirectNotifier,
    RelayNotifier,
    create_notifier,
)

RELAY_URL = "https://workflow.example.com/hook"


def relay_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RelayNotifier(RELAY_URL, timeout=5, client=client)


class TestDirectNotifier:

    @pytest.mark.asyncio
    async def test_send_reply_uses_twilio(self):
        twilio = MagicMock()
        twilio.messages.create.return_value = MagicMock(sid="SM123")
        notifier = DirectNotifier(from_number="+15550000000", client=twilio)

        sid = await notifier.send_reply("+15551234567", "Hello")

        assert sid == "SM123"
        twilio.messages.create.assert_called_once_with(
            to="+15551234567", from_="+15550000000", body="Hello"
        )

    @pytest.mark.asyncio
    async def test_rejected_send_raises_delivery_error(self):
        twilio = MagicMock()
        twilio.messages.create.side_effect = TwilioRestException(
            400, "https://api.twilio.com", msg="Invalid 'To' number"
        )
        notifier = DirectNotifier(from_number="+15550000000", client=twilio)

        with pytest.raises(DeliveryError) as exc_info:
            await notifier.send_reply("+1555", "Hello")

        assert exc_info.value.status == 400
        # Never retried
        assert twilio.messages.create.call_count == 1

    @pytest.mark.asyncio
    async def test_publish_is_not_forwarded(self):
        notifier = DirectNotifier(from_number="+15550000000", client=MagicMock())
        assert await notifier.publish("call_summary", {"sessionId": "CA1"}) is False

    def test_requires_from_number(self):
        with pytest.raises(ConfigurationError):
            DirectNotifier(client=MagicMock())


class TestRelayNotifier:

    @pytest.mark.asyncio
    async def test_send_reply_posts_envelope(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        notifier = relay_with(handler)
        await notifier.send_reply("+15551234567", "Hi there", context={"userMessage": "Hello"})
        await notifier.close()

        assert len(requests) == 1
        body = json.loads(requests[0].content)
        assert str(requests[0].url) == RELAY_URL
        assert body["event"] == "sms_reply"
        assert "timestamp" in body
        assert body["data"] == {
            "userPhone": "+15551234567",
            "aiResponse": "Hi there",
            "userMessage": "Hello",
        }

    @pytest.mark.asyncio
    async def test_context_event_overrides_default(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(204)

        notifier = relay_with(handler)
        await notifier.send_reply("+15551234567", "Welcome", context={"event": "initial_outreach"})

        assert bodies[0]["event"] == "initial_outreach"
        assert "event" not in bodies[0]["data"]

    @pytest.mark.asyncio
    async def test_timeout_is_logged_and_swallowed(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        notifier = relay_with(handler)

        assert await notifier.publish("call_summary", {"sessionId": "CA1"}) is False
        # send_reply does not raise either
        assert await notifier.send_reply("+15551234567", "Hi") is None

    @pytest.mark.asyncio
    async def test_error_status_is_swallowed(self):
        notifier = relay_with(lambda request: httpx.Response(502, text="bad gateway"))
        assert await notifier.publish("message_status", {"MessageSid": "SM1"}) is False

    def test_requires_url(self):
        with pytest.raises(ConfigurationError):
            RelayNotifier("")


def test_create_notifier_picks_mode():
    direct = create_notifier(Settings(
        openai_api_key="key",
        twilio_account_sid="ACtest",
        twilio_auth_token="token",
        twilio_phone_number="+15550000000",
    ))
    relay = create_notifier(Settings(
        openai_api_key="key", delivery_mode="relay", relay_webhook_url=RELAY_URL
    ))

    assert isinstance(direct, DirectNotifier)
    assert isinstance(relay, RelayNotifier)
    assert relay.url == RELAY_URL
