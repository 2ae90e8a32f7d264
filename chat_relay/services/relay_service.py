"""Service relaying a validated conversation to the completion provider.

The RelayService owns the provider adapter and turns its fragment stream
into the relay's own event stream.  The provider's first fragment is
awaited before any response header is committed, so connection and
authentication failures still produce a plain JSON error with the right
status.  Failures after that point end the stream with an ``error``
frame.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Sequence
from functools import lru_cache

from loguru import logger

from ..config.llm_config import LlmConfig, get_llm_config
from ..models.chat_message import ChatMessage
from ..providers.base import CompletionProvider
from ..providers.chat_openai import ChatOpenAIProvider
from ..utils.error_handler import ConfigurationError, RelayError, classify_provider_error
from ..utils.stream_protocol import (
    encode_done,
    encode_frame,
    error_frame,
    finish_frame,
    start_frame,
    text_delta_frame,
    text_end_frame,
    text_start_frame,
)

_EXHAUSTED = object()


class RelayService:
    """Forwards one conversation per call and re-emits the reply as a stream.

    The service is shared by all requests but holds no per-request state;
    the configuration and the provider adapter are read-only after
    construction.
    """

    def __init__(
        self,
        llm_config: LlmConfig | None = None,
        provider: CompletionProvider | None = None,
    ) -> None:
        self.llm_config = llm_config or get_llm_config()
        self._provider = provider
        if self._provider is None and self.llm_config.is_configured:
            self._provider = ChatOpenAIProvider(self.llm_config)

    @property
    def provider(self) -> CompletionProvider:
        """Return the provider adapter, refusing to run without a credential."""
        if self._provider is None or not self.llm_config.is_configured:
            logger.error("LLM_API_KEY is not configured; refusing chat requests")
            raise ConfigurationError()
        return self._provider

    async def _next_fragment(self, fragments: AsyncIterator[str]) -> object:
        try:
            async with asyncio.timeout(self.llm_config.timeout):
                return await anext(fragments)
        except StopAsyncIteration:
            return _EXHAUSTED

    async def open_stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Start the provider call and return the encoded event stream.

        Raises
        ------
        ConfigurationError
            If no provider credential is configured.
        RelayError
            The classified provider failure, when it happens before the
            first fragment arrived.
        """
        provider = self.provider
        logger.info("Relaying {} messages to {}", len(messages), provider.model)
        fragments = provider.stream(messages)
        try:
            first = await self._next_fragment(fragments)
        except Exception as exc:
            await _close_quietly(fragments)
            error = classify_provider_error(exc)
            logger.opt(exception=exc).error(
                "Provider call failed before streaming: {}", error.code.value
            )
            raise error from exc
        return self._relay(fragments, first)

    async def _relay(self, fragments: AsyncIterator[str], first: object) -> AsyncIterator[str]:
        message_id = uuid.uuid4().hex
        part_id = uuid.uuid4().hex
        count = 0
        yield encode_frame(start_frame(message_id))
        yield encode_frame(text_start_frame(part_id))
        try:
            fragment = first
            while fragment is not _EXHAUSTED:
                count += 1
                yield encode_frame(text_delta_frame(part_id, fragment))
                fragment = await self._next_fragment(fragments)
        except Exception as exc:
            error: RelayError = classify_provider_error(exc)
            logger.opt(exception=exc).error(
                "Provider stream failed after {} fragments: {}", count, error.code.value
            )
            yield encode_frame(error_frame(error.message))
            return
        finally:
            await _close_quietly(fragments)
        yield encode_frame(text_end_frame(part_id))
        yield encode_frame(finish_frame())
        yield encode_done()
        logger.info("Relayed {} fragments for message {}", count, message_id)


async def _close_quietly(fragments: AsyncIterator[str]) -> None:
    aclose = getattr(fragments, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.exception("Failed to close provider stream")


@lru_cache()
def get_relay_service() -> RelayService:
    """Dependency injector for the process-wide RelayService."""
    return RelayService()
