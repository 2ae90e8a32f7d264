"""Enumerations used across models."""

from enum import Enum


class MessageRole(str, Enum):
    """Enum for message roles in a conversation.

    The role field distinguishes between the sender of each message in the
    conversation.  ``USER`` denotes a human message, ``ASSISTANT`` denotes
    a reply from the AI model, and ``SYSTEM`` can be used for
    informational or system‑level messages.
    """

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class StreamState(str, Enum):
    """Lifecycle of a single chat session's request."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    READY = "ready"
    ERRORED = "errored"


class ErrorCode(str, Enum):
    """Every error category surfaced by the validator, relay or client."""

    # Client-side input validation
    EMPTY_MESSAGE = "EmptyMessage"
    MESSAGE_TOO_LONG = "MessageTooLong"
    UNSAFE_CONTENT = "UnsafeContent"

    # Relay request validation
    INVALID_CONTENT_TYPE = "InvalidContentType"
    MALFORMED_JSON = "MalformedJSON"
    INVALID_MESSAGES_SHAPE = "InvalidMessagesShape"
    EMPTY_CONVERSATION = "EmptyConversation"
    CONVERSATION_TOO_LONG = "ConversationTooLong"
    INVALID_MESSAGE_FORMAT = "InvalidMessageFormat"

    # Server and upstream failures
    SERVER_MISCONFIGURED = "ServerMisconfigured"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    UPSTREAM_AUTH_FAILED = "UpstreamAuthFailed"
    INTERNAL_ERROR = "InternalError"

    # Client-side stream consumption
    STREAM_INTERRUPTED = "StreamInterrupted"


class FrameType(str, Enum):
    """Event types of the relay's server-sent event stream."""

    START = "start"
    TEXT_START = "text-start"
    TEXT_DELTA = "text-delta"
    TEXT_END = "text-end"
    FINISH = "finish"
    ERROR = "error"


class NoticeKind(str, Enum):
    """Kinds of transient notices shown to the user."""

    VALIDATION = "validation"
    ERROR = "error"
