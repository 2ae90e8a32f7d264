"""Boundary validation for ``POST /chat`` request bodies.

Checks run in a fixed order and stop at the first failure, so every
rejected request maps to exactly one error code.  Nothing that fails
here is ever forwarded to the provider.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import ValidationError

from ..models.chat_message import ChatMessage
from ..models.chat_request import ChatRequest
from ..models.conversation import MAX_CONVERSATION_MESSAGES
from ..models.enums import ErrorCode, MessageRole
from ..utils.error_handler import RequestValidationError
from ..utils.input_validator import MAX_MESSAGE_LENGTH

JSON_MEDIA_TYPE = "application/json"

_ROLES = {role.value for role in MessageRole}


def _reject(code: ErrorCode) -> RequestValidationError:
    logger.info("Rejected chat request: {}", code.value)
    return RequestValidationError(code)


def _is_well_formed(message: Any) -> bool:
    if not isinstance(message, dict):
        return False
    if message.get("role") not in _ROLES:
        return False
    parts = message.get("parts")
    if not isinstance(parts, list):
        return False
    for part in parts:
        if not isinstance(part, dict) or not isinstance(part.get("type"), str):
            return False
        if part["type"] == "text" and not isinstance(part.get("text"), str):
            return False
    return True


def _longest_text(message: dict[str, Any]) -> int:
    return max(
        (len(part["text"]) for part in message["parts"] if part["type"] == "text"),
        default=0,
    )


def parse_chat_request(content_type: str | None, body: bytes) -> list[ChatMessage]:
    """Validate a raw request and return its conversation.

    Parameters
    ----------
    content_type: str, optional
        Value of the request's ``Content-Type`` header.
    body: bytes
        Raw request body; it is only parsed once the content type passed.

    Raises
    ------
    RequestValidationError
        With the code of the first rule the request breaks.
    """
    if not content_type or JSON_MEDIA_TYPE not in content_type.lower():
        raise _reject(ErrorCode.INVALID_CONTENT_TYPE)

    try:
        payload = json.loads(body)
    except (ValueError, RecursionError):
        raise _reject(ErrorCode.MALFORMED_JSON) from None

    messages = payload.get("messages") if isinstance(payload, dict) else None
    if not isinstance(messages, list):
        raise _reject(ErrorCode.INVALID_MESSAGES_SHAPE)

    if not messages:
        raise _reject(ErrorCode.EMPTY_CONVERSATION)

    if len(messages) > MAX_CONVERSATION_MESSAGES:
        raise _reject(ErrorCode.CONVERSATION_TOO_LONG)

    if not all(_is_well_formed(message) for message in messages):
        raise _reject(ErrorCode.INVALID_MESSAGE_FORMAT)

    if any(_longest_text(message) > MAX_MESSAGE_LENGTH for message in messages):
        raise _reject(ErrorCode.MESSAGE_TOO_LONG)

    try:
        request = ChatRequest.model_validate({"messages": messages})
    except ValidationError:
        raise _reject(ErrorCode.INVALID_MESSAGE_FORMAT) from None

    return request.messages
