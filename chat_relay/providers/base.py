from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any

from ..models.chat_message import ChatMessage


class CompletionProvider(ABC):
    """Abstract base class for completion providers.

    This module hides which provider produces the reply.  Implementations
    handle provider-specific details:
    - client setup and authentication
    - conversion of :class:`ChatMessage` into the provider's message format
    - extraction of text fragments from the provider's stream

    The relay only ever sees an async iterator of non-empty text fragments
    in the order the provider produced them.  Provider exceptions are
    raised unchanged; classifying them is the relay's job.
    """

    @property
    @abstractmethod
    def model(self) -> str:
        """Identifier of the model requests are sent to."""

    @abstractmethod
    def stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Start one streaming completion for the whole conversation.

        Args:
            messages: Validated conversation, oldest message first

        Returns:
            Async iterator of text fragments.  Closing it releases the
            upstream connection.
        """

    async def close(self) -> None:
        """Release any client resources."""

    async def __aenter__(self) -> "CompletionProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
