"""
Services used by the orchestration layer.

Key components:
- admission: AdmissionGate deduplicating message ids and rate limiting senders,
  with a periodic sweep of expired entries.
- completion: CompletionClient for chat completions, structured call-detail
  extraction and provider-side threads.
- notifier: The outbound path, either DirectNotifier (Twilio REST) or
  RelayNotifier (workflow webhook over httpx).
- broadcast: Broadcaster pushing conversation updates to dashboard observers.
- call_history: In-memory call summaries and tow bookings for the workflow webhook.

Usage examples:
```python
from lead_relay.services.admission import AdmissionGate, Decision

gate = AdmissionGate(dedupe_window=60, min_interval=1)
if gate.admit("+15551234567", "SM123") == Decision.ACCEPT:
    ...
```
"""

# Services module initialization
