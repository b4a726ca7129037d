import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from lead_relay.bot.voice_bridge import RealtimeVoiceBridge, VoiceSession, find_agent_text
from lead_relay.exceptions import ExtractionError
from lead_relay.models.conversation import InMemoryConversationStore
from lead_relay.models.message_schemas import StreamStartFrame
from lead_relay.orchestrator import ConversationOrchestrator


def start_frame(call_sid="CA123", stream_sid="MZ456", caller="+15551234567"):
    return StreamStartFrame(**{
        "event": "start",
        "streamSid": stream_sid,
        "start": {
            "streamSid": stream_sid,
            "callSid": call_sid,
            "customParameters": {"caller": caller} if caller else {},
        },
    })


def response_done(transcript):
    return {
        "type": "response.done",
        "response": {"output": [{"content": [{"type": "audio", "transcript": transcript}]}]},
    }


@pytest.fixture
def telephony_ws():
    websocket = AsyncMock(spec=WebSocket)
    websocket.application_state = WebSocketState.CONNECTED
    return websocket


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.complete_call = AsyncMock(return_value=None)
    return orchestrator


def make_bridge(orchestrator, client):
    return RealtimeVoiceBridge(
        orchestrator, api_key="test-key", session_update_delay=0, client_factory=lambda: client
    )


def test_voice_session_transcript_lines():
    session = VoiceSession(session_id="CA1")
    session.add_user_line("Hi, I need a service")
    session.add_agent_line("Sure, what's your name?")

    assert session.transcript == "User: Hi, I need a service\nAgent: Sure, what's your name?\n"


def test_find_agent_text_prefers_first_content_with_text():
    frame = {"response": {"output": [{"content": [{"type": "audio"}, {"type": "text", "text": "Hello"}]}]}}
    assert find_agent_text(frame) == "Hello"
    assert find_agent_text({"response": {"output": []}}) is None
    assert find_agent_text({}) is None


@pytest.mark.asyncio
async def test_session_is_keyed_by_call_sid_then_stream_sid(orchestrator, telephony_ws, fake_realtime_client):
    bridge = make_bridge(orchestrator, fake_realtime_client())

    session = await bridge.start_session(start_frame(call_sid=None), telephony_ws)
    assert session.session_id == "MZ456"
    assert session.caller == "+15551234567"
    await bridge.end_session(session.session_id)


@pytest.mark.asyncio
async def test_session_update_is_sent_first(orchestrator, telephony_ws, fake_realtime_client):
    client = fake_realtime_client()
    bridge = make_bridge(orchestrator, client)

    session = await bridge.start_session(start_frame(), telephony_ws)
    await asyncio.sleep(0.01)

    update = client.sent[0]
    assert update["type"] == "session.update"
    assert update["session"]["input_audio_format"] == "g711_ulaw"
    assert update["session"]["output_audio_format"] == "g711_ulaw"
    assert update["session"]["turn_detection"] == {"type": "server_vad"}
    assert update["session"]["input_audio_transcription"] == {"model": "whisper-1"}
    assert update["session"]["modalities"] == ["text", "audio"]
    await bridge.end_session(session.session_id)


@pytest.mark.asyncio
async def test_provider_audio_is_streamed_to_call(orchestrator, telephony_ws, fake_realtime_client):
    client = fake_realtime_client([{"type": "response.audio.delta", "delta": "UklGRg=="}])
    bridge = make_bridge(orchestrator, client)

    session = await bridge.start_session(start_frame(), telephony_ws)
    await asyncio.sleep(0.01)

    sent = json.loads(telephony_ws.send_text.call_args.args[0])
    assert sent == {"event": "media", "streamSid": "MZ456", "media": {"payload": "UklGRg=="}}
    await bridge.end_session(session.session_id)


@pytest.mark.asyncio
async def test_forward_media_appends_audio(orchestrator, telephony_ws, fake_realtime_client):
    client = fake_realtime_client()
    bridge = make_bridge(orchestrator, client)
    session = await bridge.start_session(start_frame(), telephony_ws)

    assert await bridge.forward_media(session.session_id, "AAAA") is True
    assert {"type": "input_audio_buffer.append", "audio": "AAAA"} in client.sent
    assert await bridge.forward_media("unknown", "AAAA") is False
    await bridge.end_session(session.session_id)


@pytest.mark.asyncio
async def test_call_transcript_is_extracted_once(orchestrator, telephony_ws, fake_realtime_client):
    client = fake_realtime_client([
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "Hi, I'm Sam "},
        {"type": "response.done", "response": {"output": []}},
        response_done("Hi Sam, when suits you?"),
        {"type": "error", "error": {"message": "ignored"}},
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "Tuesday"},
    ])
    bridge = make_bridge(orchestrator, client)

    session = await bridge.start_session(start_frame(), telephony_ws)
    await asyncio.sleep(0.01)
    await bridge.end_session(session.session_id)
    await bridge.end_session(session.session_id)

    orchestrator.complete_call.assert_awaited_once_with(
        "CA123",
        "User: Hi, I'm Sam\nAgent: Hi Sam, when suits you?\nUser: Tuesday\n",
        caller="+15551234567",
    )
    assert client.closed is True
    assert bridge.active_calls == 0


@pytest.mark.asyncio
async def test_silent_call_is_still_extracted(orchestrator, telephony_ws, fake_realtime_client):
    bridge = make_bridge(orchestrator, fake_realtime_client())

    session = await bridge.start_session(start_frame(call_sid="CA1"), telephony_ws)
    await bridge.end_session(session.session_id)

    orchestrator.complete_call.assert_awaited_once_with("CA1", "", caller="+15551234567")


@pytest.mark.asyncio
async def test_silent_call_teardown_survives_extraction_failure(
    telephony_ws, fake_completion, fake_notifier, fake_realtime_client
):
    fake_completion.extract_error = ExtractionError("empty transcript")
    orchestrator = ConversationOrchestrator(InMemoryConversationStore(), fake_completion, fake_notifier)
    client = fake_realtime_client()
    bridge = make_bridge(orchestrator, client)

    session = await bridge.start_session(start_frame(call_sid="CA1"), telephony_ws)
    assert await bridge.end_session(session.session_id) is None

    assert fake_completion.transcripts == [""]
    assert fake_notifier.events == []
    assert client.closed is True
    assert bridge.active_calls == 0


@pytest.mark.asyncio
async def test_provider_close_hangs_up_call(orchestrator, telephony_ws, fake_realtime_client):
    client = fake_realtime_client([None])
    bridge = make_bridge(orchestrator, client)

    session = await bridge.start_session(start_frame(), telephony_ws)
    await asyncio.sleep(0.01)

    telephony_ws.close.assert_called_once()
    await bridge.end_session(session.session_id)


@pytest.mark.asyncio
async def test_failed_provider_connect_keeps_session_for_teardown(orchestrator, telephony_ws, fake_realtime_client):
    bridge = make_bridge(orchestrator, fake_realtime_client(connect_ok=False))

    session = await bridge.start_session(start_frame(), telephony_ws)

    assert session.session_id not in bridge.response_tasks
    assert bridge.active_calls == 1
    await bridge.end_session(session.session_id)
    assert bridge.active_calls == 0
