"""
Handlers for the relay's HTTP and websocket routes.

Key components:
- sms_handlers: Inbound SMS acknowledgment and admission; delivery status callbacks.
- call_handlers: TwiML answering incoming calls with a media stream.
- stream_handlers: Per-frame handling of the Twilio media stream.
- lead_handlers: Outreach to lists of leads.
- webhook_handlers: The multiplexed workflow webhook.
- dashboard_handlers: Conversation read API and the observer websocket.
- common: Body parsing (JSON or form) and the error envelope.

HTTP handlers read their collaborators from request.app.state, which
create_app() populates.
"""

# Handlers module initialization
