"""Models representing chat messages and their parts."""

from __future__ import annotations

import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

from .enums import MessageRole


class TextPart(BaseModel):
    """Plain text content of a message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class OpaquePart(BaseModel):
    """Any part kind the relay does not interpret (attachments, tool calls...).

    Extra fields are preserved so the part survives a round trip untouched.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str


def _part_tag(value: Any) -> str:
    part_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return "text" if part_type == "text" else "opaque"


Part = Annotated[
    Union[Annotated[TextPart, Tag("text")], Annotated[OpaquePart, Tag("opaque")]],
    Discriminator(_part_tag),
]


def new_message_id() -> str:
    return uuid.uuid4().hex


class ChatMessage(BaseModel):
    """Represents a single message in a conversation.

    A message is immutable once created.  Its ``parts`` are kept in the
    order they were produced; only text parts contribute to the prompt
    sent to the provider.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    role: MessageRole
    parts: tuple[Part, ...] = ()

    @classmethod
    def from_text(cls, role: MessageRole, text: str) -> ChatMessage:
        return cls(role=role, parts=(TextPart(text=text),))

    @property
    def text(self) -> str:
        """Concatenated text of every text part, in order."""
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))
