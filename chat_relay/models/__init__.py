"""Expose commonly used model classes at the package level.

Importing these classes here allows consumers to write concise imports like::

    from chat_relay.models import ChatMessage, Conversation, StreamFrame

These names refer to the underlying Pydantic models defined in their
respective modules.
"""

from .chat_message import ChatMessage, OpaquePart, TextPart  # noqa: F401
from .chat_request import ChatRequest  # noqa: F401
from .conversation import Conversation  # noqa: F401
from .enums import ErrorCode, FrameType, MessageRole, NoticeKind, StreamState  # noqa: F401
from .stream_frame import StreamFrame  # noqa: F401
from .validation_result import ValidationResult  # noqa: F401
