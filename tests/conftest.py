"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat_relay.config.llm_config import LlmConfig
from chat_relay.main import create_app
from chat_relay.models.chat_message import ChatMessage
from chat_relay.providers.base import CompletionProvider
from chat_relay.services.relay_service import RelayService, get_relay_service


class FakeProvider(CompletionProvider):
    """In-process provider yielding canned fragments.

    With ``error`` set, the provider yields the first ``fail_after``
    fragments and then raises it.
    """

    def __init__(
        self,
        fragments: Sequence[str] = ("Hello", "!", " How can I help you today?"),
        error: BaseException | None = None,
        fail_after: int = 0,
        delay: float = 0.0,
    ) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.fail_after = fail_after
        self.delay = delay
        self.calls: list[list[ChatMessage]] = []
        self.closed = False

    @property
    def model(self) -> str:
        return "fake-model"

    async def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        self.calls.append(list(messages))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            fragments = self.fragments[: self.fail_after] if self.error else self.fragments
            for fragment in fragments:
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def make_llm_config(api_key: str | None = "test-key", **overrides: object) -> LlmConfig:
    return LlmConfig(_env_file=None, LLM_API_KEY=api_key, **overrides)


def build_test_app(provider: CompletionProvider, llm_config: LlmConfig | None = None) -> FastAPI:
    app = create_app()
    service = RelayService(llm_config=llm_config or make_llm_config(), provider=provider)
    app.dependency_overrides[get_relay_service] = lambda: service
    return app


def user_message(text: str = "Hello") -> dict[str, object]:
    return {"role": "user", "parts": [{"type": "text", "text": text}]}


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def client(fake_provider: FakeProvider) -> TestClient:
    return TestClient(build_test_app(fake_provider))
