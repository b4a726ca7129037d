"""
Lead Relay - SMS and voice relay between Twilio, OpenAI and a workflow webhook

This application answers inbound SMS and phone calls for a small business and
reaches out to new leads. SMS conversations are kept per sender and answered
with chat completions; phone calls are bridged to the OpenAI Realtime API and
their transcripts are mined for customer details when the call ends.

Architecture Overview:
- FastAPI server exposing the Twilio webhooks, the media stream websocket,
  the lead outreach and workflow endpoints, and a dashboard read API
- Admission gate deduplicating provider retries and rate limiting senders
- Conversation store with an explicit phase machine per sender
- One orchestration core for SMS turns, outreach and finished calls
- One outbound notifier per process: direct (Twilio REST) or relay (webhook)

Key Components:
- bot: Realtime API client and the voice bridge for media streams
- config: Settings, constants, and logging setup
- handlers: HTTP and websocket route handlers
- models: Payload schemas and conversation state
- services: Admission, completion, delivery, broadcast and call history
- orchestrator: Turn handling shared by every inbound path
- websocket_manager: Routing of media stream frames

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - DELIVERY_MODE: direct (default) or relay
   - TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER: for direct mode
   - RELAY_WEBHOOK_URL: for relay mode
   - PORT: Port to run the server on (default 8000)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python -m lead_relay.main
   ```

3. Point the Twilio number's messaging webhook at /sms and its voice webhook
   at /incoming-call.
"""
