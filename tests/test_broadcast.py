import json
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect

from lead_relay.services.broadcast import Broadcaster


@pytest.fixture
def broadcaster():
    return Broadcaster()


@pytest.mark.asyncio
async def test_broadcast_reaches_every_observer(broadcaster):
    first = AsyncMock(spec=WebSocket)
    second = AsyncMock(spec=WebSocket)
    broadcaster.register("a", first)
    broadcaster.register("b", second)

    delivered = await broadcaster.broadcast({"type": "new_message", "conversation_id": "c1"})

    assert delivered == 2
    sent = json.loads(first.send_text.call_args.args[0])
    assert sent == {"type": "new_message", "conversation_id": "c1"}
    second.send_text.assert_called_once()


@pytest.mark.asyncio
async def test_failing_observer_is_dropped(broadcaster):
    healthy = AsyncMock(spec=WebSocket)
    broken = AsyncMock(spec=WebSocket)
    broken.send_text.side_effect = RuntimeError("socket closed")
    broadcaster.register("healthy", healthy)
    broadcaster.register("broken", broken)

    assert await broadcaster.broadcast({"type": "new_message"}) == 1
    assert list(broadcaster.clients) == ["healthy"]


@pytest.mark.asyncio
async def test_observer_without_client_id_is_closed(broadcaster):
    websocket = AsyncMock(spec=WebSocket)

    await broadcaster.handle_observer(websocket, "")

    websocket.accept.assert_called_once()
    websocket.close.assert_called_once()
    assert broadcaster.clients == {}


@pytest.mark.asyncio
async def test_observer_is_unregistered_on_disconnect(broadcaster):
    websocket = AsyncMock(spec=WebSocket)
    websocket.receive_text.side_effect = ['{"type": "ping"}', "not json", WebSocketDisconnect()]

    await broadcaster.handle_observer(websocket, "dashboard-1")

    assert websocket.receive_text.call_count == 3
    assert broadcaster.clients == {}
