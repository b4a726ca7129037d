"""
Handles the incoming-call webhook by answering with TwiML that connects the
call to the /media-stream websocket.
"""

import logging

from fastapi import Request
from fastapi.responses import Response
from twilio.twiml.voice_response import Connect, VoiceResponse

from lead_relay.config.constants import LOGGER_NAME
from lead_relay.handlers.common import read_payload

logger = logging.getLogger(LOGGER_NAME)


def build_stream_twiml(host: str, greeting: str, caller: str = "") -> str:
    """Greet the caller, then hand the call's audio to wss://{host}/media-stream."""
    response = VoiceResponse()
    response.say(greeting)
    connect = Connect()
    stream = connect.stream(url=f"wss://{host}/media-stream")
    stream.parameter(name="caller", value=caller)
    response.append(connect)
    return str(response)


async def handle_incoming_call(request: Request):
    """Answer an incoming call webhook from Twilio."""
    if request.method == "POST":
        payload = await read_payload(request)
    else:
        payload = dict(request.query_params)

    caller = payload.get("From") or payload.get("Caller") or ""
    host = request.headers.get("host") or request.url.hostname
    logger.info(f"Incoming call from {caller or 'unknown caller'}, streaming to wss://{host}/media-stream")

    twiml = build_stream_twiml(host, request.app.state.settings.call_greeting, caller)
    return Response(content=twiml, media_type="application/xml")
