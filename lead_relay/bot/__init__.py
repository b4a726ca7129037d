"""
Bot module connecting Twilio media streams to the OpenAI Realtime API.

Key components:
- RealtimeClient: JSON-frame client for the OpenAI Realtime WebSocket endpoint.
  One client is opened per call; it queues received frames and never reconnects.
- RealtimeVoiceBridge: Owns active VoiceSessions. It forwards caller audio to the
  provider, streams provider audio back to the call, collects the transcript,
  and hands the transcript off for extraction when the stream ends.

Usage examples:
```python
from lead_relay.bot import RealtimeVoiceBridge

bridge = RealtimeVoiceBridge(orchestrator, api_key=api_key)

# On the stream's start frame
session = await bridge.start_session(start_frame, websocket)

# For each media frame
await bridge.forward_media(session.session_id, payload)

# On stop or disconnect
details = await bridge.end_session(session.session_id)
```
"""

from lead_relay.bot.realtime_api import RealtimeClient
from lead_relay.bot.voice_bridge import RealtimeVoiceBridge, VoiceSession

__all__ = ["RealtimeClient", "RealtimeVoiceBridge", "VoiceSession"]
