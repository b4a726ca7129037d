"""
Handles Twilio media stream frames on the /media-stream websocket.

Each handler receives the decoded frame, the telephony websocket, the voice
bridge and the per-connection StreamContext. Handlers return False when the
stream is over and the connection loop should stop.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import WebSocket
from pydantic import ValidationError

from lead_relay.bot.voice_bridge import RealtimeVoiceBridge
from lead_relay.config.constants import LOGGER_NAME
from lead_relay.models.message_schemas import StreamMediaFrame, StreamStartFrame

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class StreamContext:
    """Per-connection state for one media stream."""
    session_id: Optional[str] = None


async def handle_connected(
    message: Dict[str, Any],
    websocket: WebSocket,
    bridge: RealtimeVoiceBridge,
    context: StreamContext,
) -> bool:
    logger.info(f"Media stream connected (protocol {message.get('protocol')})")
    return True


async def handle_start(
    message: Dict[str, Any],
    websocket: WebSocket,
    bridge: RealtimeVoiceBridge,
    context: StreamContext,
) -> bool:
    """
    Handle the start frame by opening a voice session.

    A second start on the same connection is ignored.
    """
    if context.session_id is not None:
        logger.warning(f"Duplicate start frame for session {context.session_id}, ignoring")
        return True

    try:
        frame = StreamStartFrame(**message)
    except ValidationError as e:
        logger.error(f"Invalid start frame: {e}")
        return True

    session = await bridge.start_session(frame, websocket)
    context.session_id = session.session_id
    return True


async def handle_media(
    message: Dict[str, Any],
    websocket: WebSocket,
    bridge: RealtimeVoiceBridge,
    context: StreamContext,
) -> bool:
    if context.session_id is None:
        logger.debug("Media frame before start, dropping")
        return True

    try:
        frame = StreamMediaFrame(**message)
    except ValidationError as e:
        logger.warning(f"Invalid media frame: {e}")
        return True

    await bridge.forward_media(context.session_id, frame.media.payload)
    return True


async def handle_mark(
    message: Dict[str, Any],
    websocket: WebSocket,
    bridge: RealtimeVoiceBridge,
    context: StreamContext,
) -> bool:
    logger.debug(f"Mark received: {message.get('mark')}")
    return True


async def handle_stop(
    message: Dict[str, Any],
    websocket: WebSocket,
    bridge: RealtimeVoiceBridge,
    context: StreamContext,
) -> bool:
    logger.info(f"Media stream stopped for session {context.session_id}")
    return False
