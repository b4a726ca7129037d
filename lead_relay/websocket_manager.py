"""
WebSocket connection manager for Twilio media streams.

MediaStreamManager accepts the /media-stream websocket, decodes each frame and
routes it to the matching stream handler by its "event" field. When the stream
stops or the socket drops, the voice session is torn down, which triggers the
transcript extraction for the call.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from lead_relay.bot.voice_bridge import RealtimeVoiceBridge
from lead_relay.config.constants import (
    LOGGER_NAME,
    STREAM_EVENT_CONNECTED,
    STREAM_EVENT_MARK,
    STREAM_EVENT_MEDIA,
    STREAM_EVENT_START,
    STREAM_EVENT_STOP,
)
from lead_relay.handlers.stream_handlers import (
    StreamContext,
    handle_connected,
    handle_mark,
    handle_media,
    handle_start,
    handle_stop,
)

logger = logging.getLogger(LOGGER_NAME)

# Type hint for handler functions
HandlerFunc = Callable[
    [Dict[str, Any], WebSocket, RealtimeVoiceBridge, StreamContext],
    Awaitable[bool],
]


class MediaStreamManager:
    """Routes Twilio media stream frames to their handlers for the lifetime of a call."""

    def __init__(self, bridge: RealtimeVoiceBridge):
        self.bridge = bridge

        self.handlers: Dict[str, HandlerFunc] = {
            STREAM_EVENT_CONNECTED: handle_connected,
            STREAM_EVENT_START: handle_start,
            STREAM_EVENT_MEDIA: handle_media,
            STREAM_EVENT_MARK: handle_mark,
            STREAM_EVENT_STOP: handle_stop,
        }

    async def handle_websocket(self, websocket: WebSocket):
        """Handle a media stream connection until the call ends.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        Malformed frames and unknown events are logged and skipped. The voice
        session is always ended on the way out, whichever side closed first.
        """
        await websocket.accept()
        logger.info("Client connected to media stream")
        context = StreamContext()

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON on media stream: {data[:100]}")
                    continue
                if not isinstance(message, dict):
                    logger.warning("Received non-object frame on media stream")
                    continue

                event = message.get("event")
                handler = self.handlers.get(event)
                if handler is None:
                    logger.info(f"Received non-media event: {event}")
                    continue

                if not await handler(message, websocket, self.bridge, context):
                    break

        except WebSocketDisconnect:
            logger.info("Media stream client disconnected")
        except Exception as e:
            logger.error(f"Error in media stream connection: {e}", exc_info=True)
        finally:
            if context.session_id:
                await self.bridge.end_session(context.session_id)
            if websocket.application_state != WebSocketState.DISCONNECTED:
                try:
                    await websocket.close()
                except RuntimeError as e:
                    logger.debug(f"Media stream already closed: {e}")
            logger.info("Media stream connection closed")
