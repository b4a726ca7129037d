"""
Handles lead outreach requests.
"""

import logging

from fastapi import Request

from lead_relay.config.constants import LOGGER_NAME
from lead_relay.handlers.common import error_response, parse_payload, read_payload
from lead_relay.models.message_schemas import (
    MIN_PHONE_LENGTH,
    CheckLeadsRequest,
    LeadResult,
    normalize_phone_number,
)

logger = logging.getLogger(LOGGER_NAME)


async def handle_check_leads(request: Request):
    """
    Contact every lead in the request with a generated first message.

    Phone numbers without a leading '+' are normalized to '+digits'; numbers
    shorter than the minimum length are skipped. Leads are processed in order.

    Returns:
        dict: {"success": True, "message": ..., "results": [...]}, or a 500
        error envelope if outreach fails
    """
    payload = await read_payload(request)
    leads_request = parse_payload(CheckLeadsRequest, payload, "Invalid leads data")
    orchestrator = request.app.state.orchestrator

    results = []
    try:
        for lead in leads_request.leads:
            phone_number = normalize_phone_number(lead.phoneNumber)
            if not phone_number or len(phone_number) < MIN_PHONE_LENGTH:
                logger.warning(f"Skipping lead with invalid phone number: {lead.phoneNumber}")
                results.append(LeadResult(
                    phoneNumber=lead.phoneNumber or "",
                    name=lead.name,
                    success=False,
                    reason="Invalid phone number",
                ))
                continue

            logger.info(f"Processing lead: {phone_number}")
            results.append(await orchestrator.send_outreach(phone_number, lead.name))
    except Exception as e:
        logger.error(f"Error in check-leads: {e}", exc_info=True)
        return error_response(500, "Internal server error", str(e), {"processed": len(results)})

    return {
        "success": True,
        "message": f"Processed {len(results)} leads",
        "results": [result.model_dump(exclude_none=True) for result in results],
    }
