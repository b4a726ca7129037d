"""
Fan-out of conversation updates to connected dashboard observers.
"""

import json
import logging
from typing import Any, Dict

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect

from lead_relay.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class Broadcaster:
    """Keeps track of dashboard websockets and pushes updates to all of them."""

    def __init__(self):
        self.clients: Dict[str, WebSocket] = {}

    def register(self, client_id: str, websocket: WebSocket) -> None:
        self.clients[client_id] = websocket
        logger.info(f"Client {client_id} connected")

    def unregister(self, client_id: str) -> None:
        if self.clients.pop(client_id, None) is not None:
            logger.info(f"Client {client_id} disconnected")

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """
        Send a message to every connected observer.

        Observers whose socket fails are dropped. Returns the number of
        observers that received the message.
        """
        text = json.dumps(message, default=str)
        delivered = 0
        for client_id, websocket in list(self.clients.items()):
            try:
                await websocket.send_text(text)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping observer {client_id}: {e}")
                self.unregister(client_id)
        return delivered

    async def handle_observer(self, websocket: WebSocket, client_id: str) -> None:
        """Serve one dashboard websocket until it disconnects."""
        await websocket.accept()
        if not client_id:
            logger.warning("Observer connected without clientId, closing")
            await websocket.close()
            return

        self.register(client_id, websocket)
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    logger.debug(f"Received message from client {client_id}: {json.loads(data)}")
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON from client {client_id}")
        except WebSocketDisconnect:
            pass
        finally:
            self.unregister(client_id)
