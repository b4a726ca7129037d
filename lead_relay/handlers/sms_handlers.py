"""
Handles inbound SMS webhooks and delivery status callbacks.

Inbound messages are acknowledged immediately. Admission (dedupe and rate
limiting) runs before the acknowledgment; an accepted message's turn runs as a
background task after the response has been sent.
"""

import logging

from fastapi import BackgroundTasks, Request

from lead_relay.config.constants import LOGGER_NAME, RELAY_EVENT_MESSAGE_STATUS
from lead_relay.handlers.common import parse_payload, read_payload
from lead_relay.models.message_schemas import InboundSmsMessage, MessageStatusCallback
from lead_relay.services.admission import Decision

logger = logging.getLogger(LOGGER_NAME)

ACK_MESSAGES = {
    Decision.ACCEPT: "Message received",
    Decision.DUPLICATE: "Duplicate message ignored",
    Decision.RATE_LIMITED: "Message rate limited",
}


async def handle_incoming_sms(request: Request, background_tasks: BackgroundTasks):
    """Acknowledge an inbound SMS and schedule its turn if admitted.

    Returns:
        dict: {"success": True, "message": ...} for every well-formed message
    """
    payload = await read_payload(request)
    message = parse_payload(InboundSmsMessage, payload, "Missing required fields: Body and From")

    logger.info(f"Received SMS from {message.From} (sid: {message.MessageSid})")
    decision = request.app.state.gate.admit(message.From, message.MessageSid)

    if decision == Decision.DUPLICATE:
        logger.info(f"Duplicate message detected: {message.MessageSid}")
    elif decision == Decision.RATE_LIMITED:
        logger.info(f"Rate limiting message from {message.From}")
    else:
        background_tasks.add_task(
            request.app.state.orchestrator.run_turn,
            message.From,
            message.Body,
            message.MessageSid,
        )

    return {"success": True, "message": ACK_MESSAGES[decision]}


async def handle_message_status(request: Request, background_tasks: BackgroundTasks):
    """Acknowledge a delivery status callback and relay it best-effort."""
    payload = await read_payload(request)
    status = parse_payload(MessageStatusCallback, payload, "Invalid status callback")
    logger.info(f"Message {status.MessageSid} status: {status.MessageStatus}")

    background_tasks.add_task(
        request.app.state.notifier.publish,
        RELAY_EVENT_MESSAGE_STATUS,
        status.model_dump(exclude_none=True),
    )
    return {"success": True}
