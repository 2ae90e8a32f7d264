"""Completion provider backed by LangChain's ChatOpenAI integration.

Works against any OpenAI-compatible endpoint; by default the relay points
it at OpenRouter through ``LLM_BASE_URL``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from loguru import logger

from ..config.llm_config import LlmConfig
from ..models.chat_message import ChatMessage
from ..models.enums import MessageRole
from .base import CompletionProvider


def to_langchain_messages(messages: Sequence[ChatMessage]) -> list[BaseMessage]:
    """Convert relay messages into LangChain chat messages, preserving order."""
    lc_messages: list[BaseMessage] = []
    for message in messages:
        content = message.text
        if message.role == MessageRole.USER:
            lc_messages.append(HumanMessage(content=content))
        elif message.role == MessageRole.ASSISTANT:
            lc_messages.append(AIMessage(content=content))
        else:
            lc_messages.append(SystemMessage(content=content))
    return lc_messages


def chunk_text(content: Any) -> str:
    """Extract the text of a streamed chunk's ``content``.

    Content is usually a string but some providers send a list of content
    blocks; only their text blocks are kept.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces: list[str] = []
        for block in content:
            if isinstance(block, str):
                pieces.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                pieces.append(str(block.get("text", "")))
        return "".join(pieces)
    return ""


class ChatOpenAIProvider(CompletionProvider):
    """Streams completions through :class:`~langchain_openai.ChatOpenAI`.

    The model is built once from :class:`LlmConfig` and shared by all
    requests; ChatOpenAI keeps no per-request state.  ``timeout`` and
    ``max_retries`` bound each upstream call.
    """

    def __init__(self, llm_config: LlmConfig, llm: ChatOpenAI | None = None) -> None:
        self.llm_config = llm_config

        self._llm_kwargs: dict[str, object] = {
            "api_key": llm_config.api_key,
            "model": llm_config.model,
            "temperature": llm_config.temperature,
            "timeout": llm_config.timeout,
            "max_retries": llm_config.max_retries,
        }
        if llm_config.base_url:
            self._llm_kwargs["base_url"] = llm_config.base_url
        if llm_config.max_tokens:
            self._llm_kwargs["max_tokens"] = llm_config.max_tokens

        self.llm = llm or ChatOpenAI(**self._llm_kwargs)

    @property
    def model(self) -> str:
        return self.llm_config.model

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        lc_messages = to_langchain_messages(messages)
        logger.debug("Streaming completion from {} ({} messages)", self.model, len(lc_messages))
        async for chunk in self.llm.astream(lc_messages):
            text = chunk_text(chunk.content)
            if text:
                yield text
