"""A single event of the relay's response stream."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import FrameType


class StreamFrame(BaseModel):
    """One JSON event carried on a ``data:`` line of the stream.

    Field names are camelCase on the wire (``messageId``, ``errorText``).
    A stream ends either with a ``finish`` frame followed by ``[DONE]`` or
    with a single ``error`` frame.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: FrameType
    id: Optional[str] = None
    message_id: Optional[str] = Field(default=None, alias="messageId")
    delta: Optional[str] = None
    error_text: Optional[str] = Field(default=None, alias="errorText")

    @property
    def is_terminal(self) -> bool:
        return self.type in (FrameType.FINISH, FrameType.ERROR)
