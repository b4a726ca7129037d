"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol names and default values so the
SMS path, the voice bridge and the tests all agree on them.
"""

# Logger name used throughout the application
LOGGER_NAME = "lead_relay"

# Default OpenAI models
DEFAULT_COMPLETION_MODEL = "gpt-4o"
DEFAULT_EXTRACTION_MODEL = "gpt-4o-2024-08-06"
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-10-01"
OPENAI_REALTIME_URL = "wss://api.openai.com/v1/realtime"

# Delivery modes
DELIVERY_MODE_DIRECT = "direct"
DELIVERY_MODE_RELAY = "relay"

# Conversation modes
CONVERSATION_MODE_HISTORY = "history"
CONVERSATION_MODE_THREAD = "thread"

# Admission defaults (seconds)
DEFAULT_DEDUPE_WINDOW = 60.0
DEFAULT_MIN_MESSAGE_INTERVAL = 1.0
DEFAULT_SWEEP_INTERVAL = 30.0

# Outbound defaults (seconds)
DEFAULT_RELAY_TIMEOUT = 5.0
DEFAULT_COMPLETION_TIMEOUT = 30.0

# Realtime session defaults
DEFAULT_VOICE = "alloy"
DEFAULT_SESSION_UPDATE_DELAY = 0.25
REALTIME_TEMPERATURE = 0.8
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"
INPUT_TRANSCRIPTION_MODEL = "whisper-1"

# Telephony media stream events
STREAM_EVENT_CONNECTED = "connected"
STREAM_EVENT_START = "start"
STREAM_EVENT_MEDIA = "media"
STREAM_EVENT_MARK = "mark"
STREAM_EVENT_STOP = "stop"

# Realtime provider event types
EVENT_SESSION_UPDATE = "session.update"
EVENT_INPUT_AUDIO_APPEND = "input_audio_buffer.append"
EVENT_TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
EVENT_RESPONSE_DONE = "response.done"
EVENT_AUDIO_DELTA = "response.audio.delta"
EVENT_OUTPUT_AUDIO_DELTA = "response.output_audio.delta"
EVENT_ERROR = "error"

# Provider events worth an INFO line
LOG_EVENT_TYPES = [
    "response.content.done",
    "rate_limits.updated",
    "response.done",
    "input_audio_buffer.committed",
    "input_audio_buffer.speech_stopped",
    "input_audio_buffer.speech_started",
    "session.created",
    "session.updated",
    "response.text.done",
    "conversation.item.input_audio_transcription.completed",
]

# Dashboard broadcast message types
BROADCAST_NEW_MESSAGE = "new_message"
BROADCAST_NEW_CONVERSATION = "new_conversation"

# Relay event names
RELAY_EVENT_SMS_REPLY = "sms_reply"
RELAY_EVENT_OUTREACH = "initial_outreach"
RELAY_EVENT_CALL_SUMMARY = "call_summary"
RELAY_EVENT_MESSAGE_STATUS = "message_status"

# Carrier opt-out keywords; a matching inbound message ends the conversation
OPT_OUT_KEYWORDS = frozenset({"STOP", "STOPALL", "UNSUBSCRIBE", "CANCEL", "END", "QUIT"})

# Default prompts
DEFAULT_SMS_SYSTEM_PROMPT = (
    "You are an AI receptionist for Barts Automotive. Your job is to politely engage "
    "with the client and obtain their name, availability, and service/work required. "
    "Keep responses concise as this is SMS."
)
DEFAULT_OUTREACH_SYSTEM_PROMPT = (
    "You are an AI assistant for Barts Automotive. Your task is to initiate contact "
    "with potential leads. Keep the message professional, friendly, and focused on "
    "automotive services."
)
DEFAULT_VOICE_INSTRUCTIONS = (
    "You are an AI receptionist for Barts Automotive. Your job is to politely engage "
    "with the client and obtain their name, availability, and service/work required. "
    "Ask one question at a time. Do not ask for other contact information, and do not "
    "check availability, assume we are free. Ensure the conversation remains friendly "
    "and professional, and guide the user to provide these details naturally. If "
    "necessary, ask follow-up questions to gather the required information."
)
DEFAULT_CALL_GREETING = "Hi, you have called Bart's Automotive Centre. How can we help?"
EXTRACTION_SYSTEM_PROMPT = (
    "Extract customer details: name, availability, and any special notes from the transcript."
)
OUTREACH_REQUEST_TEMPLATE = (
    "Create an initial outreach message for {name}. Introduce Barts Automotive and "
    "ask about their automotive service needs."
)

# Workflow webhook prompts
FIRST_MESSAGE_SYSTEM_PROMPT = (
    "You write the opening line for a phone agent named Sophie from Bart's Automotive. "
    "If the input includes a name and a summary of the last call, greet the customer by "
    "name, mention what the last call was about, and ask whether they want to follow up "
    "on it or talk about something new. If the input is empty or inconclusive, treat "
    "this as a first-time caller, give a fresh greeting and ask how you can help."
)
NAME_EXTRACTION_PROMPT = (
    "Find and output the customer's name. Output only the customer's name and nothing else."
)
CALL_SUMMARY_PROMPT = (
    "Summarise the following transcript in one or two short sentences. For example: "
    "Bart called to book his car in for a service. He got a service and turbo upgrade."
)
TOW_BOOKED_MESSAGE = (
    "Your tow was successfully booked, one of our drivers will call you shortly to "
    "confirm pick up time."
)
