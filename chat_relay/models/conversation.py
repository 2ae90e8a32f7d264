"""Model representing a full conversation."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from .chat_message import ChatMessage

MAX_CONVERSATION_MESSAGES = 100


class Conversation(BaseModel):
    """Ordered, append-only sequence of messages.

    Insertion order is the turn order fed to the provider.  The relay
    refuses conversations longer than ``MAX_CONVERSATION_MESSAGES``.
    """

    messages: List[ChatMessage] = Field(
        default_factory=list,
        description="Chronological list of messages in the conversation."
    )

    def add_message(self, message: ChatMessage) -> None:
        """Append a new message to the end of the conversation."""
        self.messages.append(message)

    def __len__(self) -> int:
        return len(self.messages)
