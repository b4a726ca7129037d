"""
Helpers shared by the HTTP handlers: body parsing and the error envelope.
"""

import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from lead_relay.config.constants import LOGGER_NAME
from lead_relay.exceptions import InvalidPayloadError
from lead_relay.models.message_schemas import ErrorEnvelope

logger = logging.getLogger(LOGGER_NAME)

ModelT = TypeVar("ModelT", bound=BaseModel)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_payload(request: Request) -> Dict[str, Any]:
    """
    Read a request body as a dict, whether it was posted as JSON or as a form.

    Raises:
        InvalidPayloadError: If the body is not a JSON object or a form
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return dict(form)

    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidPayloadError("Request body is not valid JSON", {"reason": str(e)}) from e
    if not isinstance(payload, dict):
        raise InvalidPayloadError("Request body must be a JSON object")
    return payload


def parse_payload(model: Type[ModelT], payload: Dict[str, Any], message: str) -> ModelT:
    """Validate a payload against a model, reporting the offending fields on failure."""
    try:
        return model(**payload)
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise InvalidPayloadError(message, {"fields": fields}) from e


def error_response(
    status_code: int, error: str, message: str, details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    envelope = ErrorEnvelope(error=error, message=message, details=details or {})
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


async def invalid_payload_handler(request: Request, exc: InvalidPayloadError) -> JSONResponse:
    logger.warning(f"Rejected payload on {request.url.path}: {exc.message}")
    return error_response(400, "Invalid payload", exc.message, exc.details)
