import asyncio
import json
import logging
import time
import traceback
from typing import Any, AsyncIterator, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from lead_relay.config.constants import (
    DEFAULT_REALTIME_MODEL,
    EVENT_INPUT_AUDIO_APPEND,
    LOGGER_NAME,
    OPENAI_REALTIME_URL,
)

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SEND_TIMEOUT = 5.0  # seconds

# Audio deltas are base64 JSON frames and can be large
WS_MAX_SIZE = 16 * 1024 * 1024
WS_PING_INTERVAL = 20


class RealtimeClient:
    """
    Client for the OpenAI Realtime API over WebSocket.

    Frames are JSON objects in both directions. Received frames are parsed and
    queued in arrival order; frames() yields them until the socket closes. The
    connection is opened once per call and never re-established.
    """

    def __init__(self, api_key: str, model: str = DEFAULT_REALTIME_MODEL, base_url: str = OPENAI_REALTIME_URL):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.ws = None
        self.frame_queue: asyncio.Queue = asyncio.Queue()
        self._recv_task: Optional[asyncio.Task] = None
        self._connection_active = False
        self._is_closing = False

    @property
    def url(self) -> str:
        return f"{self.base_url}?model={self.model}"

    @property
    def connected(self) -> bool:
        return self._connection_active

    async def connect(self) -> bool:
        """
        Connect to the Realtime endpoint and start the receive loop.

        Returns:
            bool: True if connection was successful, False otherwise
        """
        if self._is_closing:
            logger.warning("Cannot connect - client is closing")
            return False

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        try:
            logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
            connection_start = time.time()
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    self.url,
                    max_size=WS_MAX_SIZE,
                    ping_interval=WS_PING_INTERVAL,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
            logger.debug(f"WebSocket connection established in {time.time() - connection_start:.2f} seconds")
        except asyncio.TimeoutError:
            logger.error(f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)")
            return False
        except Exception as e:
            logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
            logger.debug(f"Connection error details: {traceback.format_exc()}")
            return False

        self._connection_active = True
        self._recv_task = asyncio.create_task(self._recv_loop())
        logger.info("Connected to the OpenAI Realtime API")
        return True

    async def send_json(self, frame: Dict[str, Any]) -> bool:
        """
        Send one JSON frame to the provider.

        Returns:
            bool: True if the frame was sent, False otherwise
        """
        if not self._connection_active or self.ws is None:
            logger.warning(f"Cannot send {frame.get('type')} - connection not active")
            return False

        try:
            await asyncio.wait_for(self.ws.send(json.dumps(frame)), timeout=SEND_TIMEOUT)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timeout while sending {frame.get('type')}")
            return False
        except ConnectionClosed as e:
            logger.warning(f"Connection closed while sending {frame.get('type')}: {e}")
            self._connection_active = False
            return False
        except Exception as e:
            logger.error(f"Error sending frame: {e}")
            return False

    async def send_audio(self, payload: str) -> bool:
        """Append a base64 audio payload to the provider's input buffer."""
        return await self.send_json({"type": EVENT_INPUT_AUDIO_APPEND, "audio": payload})

    async def _recv_loop(self) -> None:
        """
        Receive frames until the socket closes.

        Malformed frames are logged and dropped. A None sentinel marks the end
        of the stream for frames().
        """
        try:
            while self._connection_active and not self._is_closing:
                message = await self.ws.recv()
                if isinstance(message, bytes):
                    logger.warning(f"Dropping unexpected binary frame of {len(message)} bytes")
                    continue
                try:
                    frame = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON: {message[:100]}...")
                    continue
                if not isinstance(frame, dict):
                    logger.warning(f"Dropping non-object frame: {message[:100]}")
                    continue
                await self.frame_queue.put(frame)
        except ConnectionClosedOK:
            logger.info("WebSocket connection closed normally")
        except ConnectionClosedError as e:
            logger.warning(f"WebSocket connection closed unexpectedly: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in receive loop: {e}")
            logger.debug(f"Receive loop error details: {traceback.format_exc()}")
        finally:
            self._connection_active = False
            self.frame_queue.put_nowait(None)
            logger.info("Receive loop exited, connection marked as inactive")

    async def frames(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield received frames in order until the connection ends."""
        while True:
            frame = await self.frame_queue.get()
            if frame is None:
                return
            yield frame

    async def close(self) -> None:
        """Close the WebSocket connection and stop the receive loop."""
        if self._is_closing:
            return
        logger.info("Closing OpenAI Realtime client")
        self._is_closing = True
        self._connection_active = False

        if self._recv_task and not self._recv_task.done():
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass

        if self.ws:
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"Error closing OpenAI WebSocket: {e}")
            self.ws = None
