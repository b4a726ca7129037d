"""
Read API and observer websocket for the conversation dashboard.
"""

from fastapi import Request, WebSocket

from lead_relay.handlers.common import error_response


async def list_conversations(request: Request):
    """All conversations, most recently updated first."""
    conversations = request.app.state.store.list_conversations()
    return {"conversations": [state.summary() for state in conversations]}


async def get_conversation(conversation_id: str, request: Request):
    state = request.app.state.store.get_by_id(conversation_id)
    if state is None:
        return error_response(
            404, "Not found", f"Conversation {conversation_id} not found",
            {"conversation_id": conversation_id},
        )
    return state.detail()


async def observer_websocket(websocket: WebSocket):
    client_id = websocket.query_params.get("clientId", "")
    await websocket.app.state.broadcaster.handle_observer(websocket, client_id)
