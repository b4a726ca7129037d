"""
Bridge between Twilio media streams and the OpenAI Realtime API.

Each call gets a VoiceSession and its own RealtimeClient. Caller audio is
forwarded to the provider as it arrives, provider audio is streamed back to the
call, and both sides' speech is collected into an append-only transcript. When
the stream ends the transcript is handed to the orchestrator for extraction,
exactly once per session.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from lead_relay.bot.realtime_api import RealtimeClient
from lead_relay.config.constants import (
    AUDIO_FORMAT_G711_ULAW,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_SESSION_UPDATE_DELAY,
    DEFAULT_VOICE,
    DEFAULT_VOICE_INSTRUCTIONS,
    EVENT_AUDIO_DELTA,
    EVENT_ERROR,
    EVENT_OUTPUT_AUDIO_DELTA,
    EVENT_RESPONSE_DONE,
    EVENT_SESSION_UPDATE,
    EVENT_TRANSCRIPTION_COMPLETED,
    INPUT_TRANSCRIPTION_MODEL,
    LOG_EVENT_TYPES,
    LOGGER_NAME,
    REALTIME_TEMPERATURE,
)
from lead_relay.models.message_schemas import StreamMediaFrame, StreamMediaPayload, StreamStartFrame
from lead_relay.models.openai_schemas import CallDetails

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class VoiceSession:
    session_id: str
    stream_sid: Optional[str] = None
    call_sid: Optional[str] = None
    caller: Optional[str] = None
    lines: List[str] = field(default_factory=list)

    def add_user_line(self, text: str) -> None:
        self.lines.append(f"User: {text}\n")

    def add_agent_line(self, text: str) -> None:
        self.lines.append(f"Agent: {text}\n")

    @property
    def transcript(self) -> str:
        return "".join(self.lines)


def find_agent_text(frame: Dict[str, Any]) -> Optional[str]:
    """Return the first transcript (or text) in a response.done frame's first output item."""
    output = (frame.get("response") or {}).get("output") or []
    if not output:
        return None
    for content in output[0].get("content") or []:
        text = content.get("transcript") or content.get("text")
        if text:
            return text
    return None


class RealtimeVoiceBridge:
    """
    Owns every active voice session.

    Sessions, provider clients, telephony sockets and provider pump tasks are
    tracked per session id so that a session can be torn down from either side.
    """

    def __init__(
        self,
        orchestrator,
        api_key: Optional[str] = None,
        model: str = DEFAULT_REALTIME_MODEL,
        voice: str = DEFAULT_VOICE,
        instructions: str = DEFAULT_VOICE_INSTRUCTIONS,
        session_update_delay: float = DEFAULT_SESSION_UPDATE_DELAY,
        client_factory: Optional[Callable[[], RealtimeClient]] = None,
    ):
        self.orchestrator = orchestrator
        self.voice = voice
        self.instructions = instructions
        self.session_update_delay = session_update_delay
        self.client_factory = client_factory or (lambda: RealtimeClient(api_key, model))

        self.sessions: Dict[str, VoiceSession] = {}
        self.clients: Dict[str, RealtimeClient] = {}
        self.websockets: Dict[str, WebSocket] = {}
        self.response_tasks: Dict[str, asyncio.Task] = {}

    @property
    def active_calls(self) -> int:
        return len(self.sessions)

    def build_session_update(self) -> Dict[str, Any]:
        return {
            "type": EVENT_SESSION_UPDATE,
            "session": {
                "turn_detection": {"type": "server_vad"},
                "input_audio_format": AUDIO_FORMAT_G711_ULAW,
                "output_audio_format": AUDIO_FORMAT_G711_ULAW,
                "voice": self.voice,
                "instructions": self.instructions,
                "modalities": ["text", "audio"],
                "temperature": REALTIME_TEMPERATURE,
                "input_audio_transcription": {"model": INPUT_TRANSCRIPTION_MODEL},
            },
        }

    async def start_session(self, frame: StreamStartFrame, websocket: WebSocket) -> VoiceSession:
        """
        Create a session for a new media stream and connect it to the provider.

        The session is keyed by call sid, then stream sid, then a generated id.
        """
        start = frame.start
        stream_sid = frame.streamSid or start.streamSid
        session_id = start.callSid or stream_sid or f"session_{int(time.time() * 1000)}"
        session = VoiceSession(
            session_id=session_id,
            stream_sid=stream_sid,
            call_sid=start.callSid,
            caller=start.customParameters.get("caller"),
        )

        client = self.client_factory()
        self.sessions[session_id] = session
        self.clients[session_id] = client
        self.websockets[session_id] = websocket
        logger.info(f"Incoming stream has started {stream_sid} (session {session_id})")

        if not await client.connect():
            logger.error(f"Could not reach the realtime provider for session {session_id}")
            return session

        self.response_tasks[session_id] = asyncio.create_task(self._pump_provider(session_id))
        return session

    async def forward_media(self, session_id: str, payload: str) -> bool:
        client = self.clients.get(session_id)
        if client is None or not client.connected:
            return False
        return await client.send_audio(payload)

    async def _pump_provider(self, session_id: str) -> None:
        """Configure the provider session, then relay provider frames until it closes."""
        client = self.clients.get(session_id)
        session = self.sessions.get(session_id)
        if client is None or session is None:
            logger.warning(f"Missing client or session for {session_id}")
            return

        try:
            await asyncio.sleep(self.session_update_delay)
            logger.info("Sending session update")
            await client.send_json(self.build_session_update())

            async for frame in client.frames():
                await self.handle_provider_frame(session, frame)
        except asyncio.CancelledError:
            logger.info(f"Provider pump cancelled for session {session_id}")
            raise
        except Exception as e:
            logger.error(f"Error handling provider frames for session {session_id}: {e}", exc_info=True)

        # Provider went away while the call is still up; hang up so the stream drains
        logger.info(f"Disconnected from the OpenAI Realtime API for session {session_id}")
        websocket = self.websockets.get(session_id)
        if websocket is not None and websocket.application_state != WebSocketState.DISCONNECTED:
            try:
                await websocket.close()
            except Exception as e:
                logger.warning(f"Error closing telephony socket for session {session_id}: {e}")

    async def handle_provider_frame(self, session: VoiceSession, frame: Dict[str, Any]) -> None:
        event_type = frame.get("type")
        if event_type in LOG_EVENT_TYPES:
            logger.info(f"Received event: {event_type}")

        if event_type == EVENT_TRANSCRIPTION_COMPLETED:
            text = (frame.get("transcript") or "").strip()
            if text:
                session.add_user_line(text)
                logger.info(f"User: {text}")
        elif event_type == EVENT_RESPONSE_DONE:
            text = find_agent_text(frame)
            if text:
                session.add_agent_line(text)
                logger.info(f"Agent: {text}")
            else:
                logger.warning(f"No agent transcript in response.done for session {session.session_id}")
        elif event_type in (EVENT_AUDIO_DELTA, EVENT_OUTPUT_AUDIO_DELTA):
            delta = frame.get("delta")
            if delta:
                await self._send_audio_to_call(session, delta)
        elif event_type == EVENT_ERROR:
            logger.error(f"Realtime provider error for session {session.session_id}: {frame.get('error')}")

    async def _send_audio_to_call(self, session: VoiceSession, delta: str) -> None:
        websocket = self.websockets.get(session.session_id)
        if websocket is None:
            return
        media_frame = StreamMediaFrame(
            streamSid=session.stream_sid, media=StreamMediaPayload(payload=delta)
        )
        try:
            await websocket.send_text(json.dumps(media_frame.model_dump(exclude_none=True)))
        except Exception as e:
            logger.warning(f"Could not send audio to call {session.session_id}: {e}")

    async def end_session(self, session_id: str) -> Optional[CallDetails]:
        """
        Tear down a session and process its transcript.

        Safe to call more than once; only the first call does any work.
        """
        session = self.sessions.pop(session_id, None)
        if session is None:
            return None
        self.websockets.pop(session_id, None)

        task = self.response_tasks.pop(session_id, None)
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        client = self.clients.pop(session_id, None)
        if client is not None:
            await client.close()
            logger.info(f"Closed OpenAI Realtime client for session {session_id}")

        transcript = session.transcript
        logger.info(f"Full transcript for session {session_id}:\n{transcript}")
        # Calls without speech are still handed on; extraction failures are logged there
        return await self.orchestrator.complete_call(session_id, transcript, caller=session.caller)
