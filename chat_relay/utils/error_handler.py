"""Error handling utilities and custom exceptions."""

from __future__ import annotations

import asyncio

import httpx
import openai
from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from ..models.enums import ErrorCode

ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_CONTENT_TYPE: "Content-Type must be application/json",
    ErrorCode.MALFORMED_JSON: "Request body is not valid JSON",
    ErrorCode.INVALID_MESSAGES_SHAPE: "Messages must be an array",
    ErrorCode.EMPTY_CONVERSATION: "At least one message is required",
    ErrorCode.CONVERSATION_TOO_LONG: "Too many messages in the conversation",
    ErrorCode.INVALID_MESSAGE_FORMAT: "Invalid message format",
    ErrorCode.MESSAGE_TOO_LONG: "The message is too long",
    ErrorCode.SERVER_MISCONFIGURED: "Server configuration is incomplete",
    ErrorCode.UPSTREAM_UNAVAILABLE: "Could not connect to the AI service",
    ErrorCode.UPSTREAM_AUTH_FAILED: "Authentication with the AI service failed",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}


class RelayError(Exception):
    """Base class for failures the relay reports to its caller.

    Each error carries the HTTP status, the error code and a message that
    is safe to show to the client.
    """

    status_code = 500

    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCode.INTERNAL_ERROR])
        super().__init__(self.message)

    def to_body(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code.value}


class RequestValidationError(RelayError):
    """The request was rejected at the boundary; never forwarded upstream."""

    status_code = 400


class ConfigurationError(RelayError):
    """Operator-actionable server misconfiguration."""

    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.SERVER_MISCONFIGURED, message)


class UpstreamError(RelayError):
    """The provider was unreachable (503) or rejected our credential (401)."""

    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        super().__init__(code, message)
        self.status_code = 401 if code == ErrorCode.UPSTREAM_AUTH_FAILED else 503


class InternalError(RelayError):
    """Unclassified failure."""

    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.INTERNAL_ERROR, message)


async def relay_exception_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Convert a RelayError into its JSON error response."""
    logger.warning("{} {} -> {} {}", request.method, request.url.path, exc.status_code, exc.code.value)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


# ---------------------------------------------------------------------------
# Provider failure classification

NETWORK_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    httpx.TransportError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)

AUTH_ERRORS = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
)

_NETWORK_MARKERS = ("fetch", "network", "connection")
_AUTH_MARKERS = ("auth", "401")


def _status_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_provider_error(exc: BaseException) -> RelayError:
    """Map a provider or network exception onto the relay's taxonomy.

    Structured exception types and HTTP statuses are checked first; the
    exception text is only inspected when neither identifies the failure.
    Network failures take priority over authentication failures.
    """
    if isinstance(exc, RelayError):
        return exc

    if isinstance(exc, NETWORK_ERRORS):
        return UpstreamError(ErrorCode.UPSTREAM_UNAVAILABLE)

    if isinstance(exc, AUTH_ERRORS) or _status_of(exc) in (401, 403):
        return UpstreamError(ErrorCode.UPSTREAM_AUTH_FAILED)

    text = str(exc).lower()
    if any(marker in text for marker in _NETWORK_MARKERS):
        return UpstreamError(ErrorCode.UPSTREAM_UNAVAILABLE)
    if any(marker in text for marker in _AUTH_MARKERS):
        return UpstreamError(ErrorCode.UPSTREAM_AUTH_FAILED)

    return InternalError()
