"""Request model for the chat API."""

from pydantic import BaseModel, Field

from .chat_message import ChatMessage


class ChatRequest(BaseModel):
    """Represents the body of a ``POST /chat`` request.

    The structural checks (shape, bounds, lengths) run before this model is
    built so that each failure maps to its own error code; the model only
    gives the already-checked payload its types.
    """

    messages: list[ChatMessage] = Field(
        ...,
        description="The whole conversation, oldest message first."
    )
