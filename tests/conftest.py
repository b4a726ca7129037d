import asyncio
import logging
import os

import pytest

# Settings are read when lead_relay.main is imported
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "ACtest")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-auth-token")
os.environ.setdefault("TWILIO_PHONE_NUMBER", "+15550000000")

from lead_relay.config.settings import Settings  # noqa: E402
from lead_relay.models.openai_schemas import CallDetails  # noqa: E402
from lead_relay.services.notifier import OutboundNotifier  # noqa: E402


class FakeCompletion:
    """Completion client double that records its inputs."""

    def __init__(self, reply="Thanks, what day works for you?", delay=0.0):
        self.reply = reply
        self.delay = delay
        self.histories = []
        self.generated = []
        self.transcripts = []
        self.thread_calls = []
        self.details = CallDetails(customer_name="Sam", availability="Tuesday", notes="Brakes squeal")
        self.extract_error = None
        self.error = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, history):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.histories.append(list(history))
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return self.reply
        finally:
            self.in_flight -= 1

    async def generate(self, system_prompt, user_prompt):
        self.generated.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.reply

    async def extract(self, transcript):
        self.transcripts.append(transcript)
        if self.extract_error:
            raise self.extract_error
        return self.details

    async def respond_in_thread(self, message, instructions=None, thread_ref=None):
        self.thread_calls.append((message, instructions, thread_ref))
        return self.reply, f"resp_{len(self.thread_calls)}"


class FakeRealtimeClient:
    """Realtime client double fed from a list of provider frames; None ends the stream."""

    def __init__(self, frames=None, connect_ok=True):
        self.queue = asyncio.Queue()
        for frame in frames or []:
            self.queue.put_nowait(frame)
        self.connect_ok = connect_ok
        self.connected = False
        self.sent = []
        self.closed = False

    async def connect(self):
        self.connected = self.connect_ok
        return self.connect_ok

    async def send_json(self, frame):
        self.sent.append(frame)
        return True

    async def send_audio(self, payload):
        return await self.send_json({"type": "input_audio_buffer.append", "audio": payload})

    async def frames(self):
        while True:
            frame = await self.queue.get()
            if frame is None:
                return
            yield frame

    async def close(self):
        self.closed = True
        self.connected = False


class FakeNotifier(OutboundNotifier):
    """Notifier double collecting sends and published events."""

    mode = "direct"

    def __init__(self):
        self.sent = []
        self.events = []
        self.error = None
        self.closed = False

    async def send_reply(self, to, body, context=None):
        if self.error:
            raise self.error
        self.sent.append({"to": to, "body": body, "context": context or {}})
        return f"SM{len(self.sent)}"

    async def publish(self, event, payload):
        self.events.append((event, payload))
        return True

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def settings():
    return Settings(
        openai_api_key="test-openai-key",
        twilio_account_sid="ACtest",
        twilio_auth_token="test-auth-token",
        twilio_phone_number="+15550000000",
        session_update_delay=0,
    )


@pytest.fixture
def fake_completion():
    return FakeCompletion()


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def fake_realtime_client():
    return FakeRealtimeClient
