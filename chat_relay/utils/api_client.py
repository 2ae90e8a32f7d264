"""HTTP client for the relay's ``POST /chat`` endpoint using httpx."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
from loguru import logger

from ..models.chat_message import ChatMessage
from ..models.enums import ErrorCode
from ..models.stream_frame import StreamFrame
from .stream_protocol import FrameDecodeError, decode_line


class RelayClientError(Exception):
    """Base class for failures observed by the client."""

    code: ErrorCode = ErrorCode.STREAM_INTERRUPTED

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RelayRequestError(RelayClientError):
    """The relay answered with a non-200 status before streaming."""

    def __init__(self, status_code: int, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class RelayTransportError(RelayClientError):
    """The connection failed or the stream could not be decoded."""


def _error_from_response(status_code: int, body: bytes) -> RelayRequestError:
    message = f"Request failed with status {status_code}"
    code = ErrorCode.INTERNAL_ERROR
    try:
        payload: Any = json.loads(body)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        if isinstance(payload.get("error"), str):
            message = payload["error"]
        try:
            code = ErrorCode(payload.get("code"))
        except ValueError:
            pass
    return RelayRequestError(status_code, code, message)


class RelayClient:
    """Streams relay responses for a conversation.

    The underlying :class:`httpx.AsyncClient` is created lazily unless one
    is injected (tests pass clients bound to a mock or ASGI transport).
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    @staticmethod
    def build_payload(messages: Sequence[ChatMessage]) -> dict[str, Any]:
        return {"messages": [message.model_dump(mode="json") for message in messages]}

    async def stream_chat(self, messages: Sequence[ChatMessage]) -> AsyncIterator[StreamFrame]:
        """Post the conversation and yield frames until the stream ends.

        Closing the generator (or cancelling its consumer) closes the
        underlying connection.
        """
        client = self._get_client()
        payload = self.build_payload(messages)
        logger.debug("Posting {} messages to {}", len(messages), self.url)
        try:
            async with client.stream("POST", self.url, json=payload) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise _error_from_response(response.status_code, body)
                async for line in response.aiter_lines():
                    try:
                        decoded = decode_line(line)
                    except FrameDecodeError as exc:
                        raise RelayTransportError("Received an invalid response from the server") from exc
                    if decoded is None:
                        continue
                    if isinstance(decoded, str):
                        return
                    yield decoded
        except httpx.TransportError as exc:
            logger.warning("Relay transport failure: {}", exc)
            raise RelayTransportError("Could not reach the chat server") from exc

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
