"""
Handles the multiplexed workflow webhook.

A single POST /webhook carries {route, data1, data2}; the route selects one of
four operations over the call history:

- "1" first message: build an opening line from the caller's last call
  (data1 = phone number)
- "2" call summary: record a call with a generated name and summary
  (data1 = phone number, data2 = transcript)
- "3" question and answer on a stateful thread
  (data1 = question, data2 = thread reference, empty for a new thread)
- "4" tow booking (data1 = phone number, data2 = location)
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import Request

from lead_relay.config.constants import (
    CALL_SUMMARY_PROMPT,
    FIRST_MESSAGE_SYSTEM_PROMPT,
    LOGGER_NAME,
    NAME_EXTRACTION_PROMPT,
    TOW_BOOKED_MESSAGE,
)
from lead_relay.exceptions import InvalidPayloadError
from lead_relay.handlers.common import error_response, parse_payload, read_payload
from lead_relay.models.message_schemas import WebhookRequest
from lead_relay.services.call_history import CallRecord

logger = logging.getLogger(LOGGER_NAME)

RouteFunc = Callable[[Any, WebhookRequest], Awaitable[Dict[str, Any]]]


def _require(value, field: str) -> str:
    if not value:
        raise InvalidPayloadError(f"Missing required field: {field}")
    return value


async def first_message(state, request: WebhookRequest) -> Dict[str, Any]:
    phone_number = _require(request.data1, "data1")
    last_call = state.call_history.latest_call(phone_number)
    name = last_call.name if last_call else None
    summary = last_call.summary if last_call else None

    message = await state.completion.generate(
        FIRST_MESSAGE_SYSTEM_PROMPT, f"Name: {name}, Summary: {summary}"
    )
    return {"firstMessage": message}


async def add_call_summary(state, request: WebhookRequest) -> Dict[str, Any]:
    phone_number = _require(request.data1, "data1")
    transcript = _require(request.data2, "data2")

    name = await state.completion.generate(NAME_EXTRACTION_PROMPT, transcript)
    summary = await state.completion.generate(CALL_SUMMARY_PROMPT, transcript)
    state.call_history.add_call(CallRecord(
        phone_number=phone_number, name=name, transcript=transcript, summary=summary
    ))
    logger.info(f"Stored call summary for {phone_number}")
    return {"success": True}


async def question_answer(state, request: WebhookRequest) -> Dict[str, Any]:
    question = _require(request.data1, "data1")
    reply, thread_ref = await state.completion.respond_in_thread(
        question,
        instructions=state.settings.voice_instructions,
        thread_ref=request.data2 or None,
    )
    return {"message": reply, "thread": thread_ref}


async def book_tow(state, request: WebhookRequest) -> Dict[str, Any]:
    phone_number = _require(request.data1, "data1")
    location = _require(request.data2, "data2")
    state.call_history.book_tow(phone_number, location)
    logger.info(f"Tow booked for {phone_number}")
    return {"message": TOW_BOOKED_MESSAGE}


WEBHOOK_ROUTES: Dict[str, RouteFunc] = {
    "1": first_message,
    "2": add_call_summary,
    "3": question_answer,
    "4": book_tow,
}


async def handle_webhook(request: Request):
    payload = await read_payload(request)
    webhook_request = parse_payload(WebhookRequest, payload, "Invalid webhook payload")

    route = WEBHOOK_ROUTES.get(webhook_request.route)
    if route is None:
        raise InvalidPayloadError(
            f"Unknown route: {webhook_request.route}", {"routes": sorted(WEBHOOK_ROUTES)}
        )

    logger.info(f"Webhook route {webhook_request.route} ({route.__name__})")
    try:
        return await route(request.app.state, webhook_request)
    except InvalidPayloadError:
        raise
    except Exception as e:
        logger.error(f"Error in webhook route {webhook_request.route}: {e}", exc_info=True)
        return error_response(500, "Internal server error", str(e), {"route": webhook_request.route})
