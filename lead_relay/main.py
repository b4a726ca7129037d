"""
FastAPI server relaying SMS and voice calls between Twilio, OpenAI and an
optional workflow webhook.

create_app() builds every collaborator (admission gate, conversation store,
completion client, notifier, broadcaster, voice bridge) once per process and
wires the HTTP and websocket routes to them through app.state. Configuration
problems surface as ConfigurationError while the app is being built, so a
half-configured process never starts serving.
"""

from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request, WebSocket

from lead_relay.bot.realtime_api import RealtimeClient
from lead_relay.bot.voice_bridge import RealtimeVoiceBridge
from lead_relay.config.logging_config import configure_logging
from lead_relay.config.settings import Settings
from lead_relay.exceptions import InvalidPayloadError
from lead_relay.handlers.call_handlers import handle_incoming_call
from lead_relay.handlers.common import invalid_payload_handler
from lead_relay.handlers.dashboard_handlers import (
    get_conversation,
    list_conversations,
    observer_websocket,
)
from lead_relay.handlers.lead_handlers import handle_check_leads
from lead_relay.handlers.sms_handlers import handle_incoming_sms, handle_message_status
from lead_relay.handlers.webhook_handlers import handle_webhook
from lead_relay.models.conversation import ConversationStore, InMemoryConversationStore
from lead_relay.orchestrator import ConversationOrchestrator
from lead_relay.services.admission import AdmissionGate
from lead_relay.services.broadcast import Broadcaster
from lead_relay.services.call_history import CallHistory
from lead_relay.services.completion import CompletionClient
from lead_relay.services.notifier import OutboundNotifier, create_notifier
from lead_relay.websocket_manager import MediaStreamManager

# Configure logging
logger = configure_logging()

APP_NAME = "Lead Relay"
APP_VERSION = "1.0.0"


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[ConversationStore] = None,
    gate: Optional[AdmissionGate] = None,
    completion: Optional[CompletionClient] = None,
    notifier: Optional[OutboundNotifier] = None,
    broadcaster: Optional[Broadcaster] = None,
    call_history: Optional[CallHistory] = None,
    realtime_client_factory: Optional[Callable[[], RealtimeClient]] = None,
) -> FastAPI:
    """
    Build the FastAPI application and its collaborators.

    Any collaborator can be passed in to replace the default one.

    Raises:
        ConfigurationError: If the environment is missing mandatory settings
    """
    settings = settings or Settings.from_env()
    store = store or InMemoryConversationStore()
    gate = gate or AdmissionGate(settings.dedupe_window, settings.min_message_interval)
    completion = completion or CompletionClient(
        api_key=settings.openai_api_key,
        model=settings.completion_model,
        extraction_model=settings.extraction_model,
        timeout=settings.completion_timeout,
    )
    notifier = notifier or create_notifier(settings)
    broadcaster = broadcaster or Broadcaster()
    call_history = call_history or CallHistory()

    orchestrator = ConversationOrchestrator(
        store,
        completion,
        notifier,
        broadcaster,
        system_prompt=settings.sms_system_prompt,
        outreach_prompt=settings.outreach_system_prompt,
        conversation_mode=settings.conversation_mode,
        max_turns=settings.max_turns,
    )
    bridge = RealtimeVoiceBridge(
        orchestrator,
        api_key=settings.openai_api_key,
        model=settings.realtime_model,
        voice=settings.voice,
        instructions=settings.voice_instructions,
        session_update_delay=settings.session_update_delay,
        client_factory=realtime_client_factory,
    )
    media_stream_manager = MediaStreamManager(bridge)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gate.start_sweeper(settings.sweep_interval)
        logger.info(
            f"{APP_NAME} started (delivery: {notifier.mode}, conversations: {settings.conversation_mode})"
        )
        try:
            yield
        finally:
            await gate.stop_sweeper()
            await notifier.close()
            logger.info(f"{APP_NAME} stopped")

    app = FastAPI(
        title=APP_NAME,
        description="Relay between Twilio SMS/voice, OpenAI and a workflow webhook",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.gate = gate
    app.state.completion = completion
    app.state.notifier = notifier
    app.state.broadcaster = broadcaster
    app.state.call_history = call_history
    app.state.orchestrator = orchestrator
    app.state.bridge = bridge

    app.add_exception_handler(InvalidPayloadError, invalid_payload_handler)

    @app.get("/")
    async def root():
        """Basic status message."""
        return {"message": f"{APP_NAME} server is running!"}

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint for monitoring system status."""
        state = request.app.state
        return {
            "status": "healthy",
            "delivery_mode": state.notifier.mode,
            "conversation_mode": state.settings.conversation_mode,
            "active_calls": state.bridge.active_calls,
            "conversations": len(state.store.list_conversations()),
        }

    app.post("/sms")(handle_incoming_sms)
    app.post("/message-status")(handle_message_status)
    app.api_route("/incoming-call", methods=["GET", "POST"])(handle_incoming_call)
    app.post("/check-leads")(handle_check_leads)
    app.post("/webhook")(handle_webhook)
    app.get("/api/conversations")(list_conversations)
    app.get("/api/conversations/{conversation_id}")(get_conversation)
    app.websocket("/ws")(observer_websocket)

    @app.websocket("/media-stream")
    async def media_stream(websocket: WebSocket):
        """Twilio media stream for a connected call."""
        await media_stream_manager.handle_websocket(websocket)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        websocket_max_size=16777216,  # audio frames are base64 JSON
    )
