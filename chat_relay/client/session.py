"""Client-side chat session: request lifecycle and stream consumption.

A ChatSession owns the visible conversation and the stream state of one
active chat.  Create it when the chat view mounts and close it when the
view goes away; after :meth:`ChatSession.close` no state is mutated and
no callback fires.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import aclosing

from loguru import logger

from ..config.client_config import ClientConfig, get_client_config
from ..memory.conversation_cache import ConversationCache
from ..memory.key_value_store import build_store
from ..models.chat_message import ChatMessage
from ..models.conversation import Conversation
from ..models.enums import FrameType, MessageRole, NoticeKind, StreamState
from ..models.stream_frame import StreamFrame
from ..utils.api_client import RelayClient, RelayClientError
from ..utils.input_validator import validate_input
from .notices import NoticeBoard

GENERIC_ERROR_MESSAGE = "An error occurred while processing your message. Please try again."

_IN_FLIGHT = (StreamState.SENDING, StreamState.STREAMING)


class StreamInterrupted(RelayClientError):
    """The stream reported an error or ended without a terminal marker."""


class ChatSession:
    """Owns one conversation and at most one in-flight relay request.

    ``submit`` validates the text, appends the user message optimistically
    and starts the request as an asyncio task.  Text fragments are
    accumulated in arrival order and committed as a single assistant
    message when the stream finishes.  On failure the conversation keeps
    every accepted message and nothing is retried.
    """

    def __init__(
        self,
        client: RelayClient,
        *,
        cache: ConversationCache | None = None,
        notices: NoticeBoard | None = None,
        on_change: Callable[["ChatSession"], None] | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.notices = notices or NoticeBoard()
        self.on_change = on_change

        self.conversation = cache.load() if cache is not None else Conversation()
        self.state = StreamState.IDLE
        self._fragments: list[str] = []
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @classmethod
    def from_config(
        cls,
        client_config: ClientConfig | None = None,
        on_change: Callable[["ChatSession"], None] | None = None,
    ) -> "ChatSession":
        """Build a session wired to the configured relay and cache."""
        config = client_config or get_client_config()
        return cls(
            RelayClient(config.relay_url, timeout=config.relay_timeout),
            cache=ConversationCache(build_store(config.cache_type, config.cache_dir)),
            notices=NoticeBoard(timeout=config.notice_timeout),
            on_change=on_change,
        )

    # ------------------------------------------------------------------
    # Views

    @property
    def busy(self) -> bool:
        return self.state in _IN_FLIGHT

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def partial_text(self) -> str:
        """Text of the assistant reply received so far."""
        return "".join(self._fragments)

    @property
    def visible_messages(self) -> list[ChatMessage]:
        """The conversation with the in-progress reply merged in."""
        messages = list(self.conversation.messages)
        if self.state == StreamState.STREAMING and self._fragments:
            messages.append(
                ChatMessage.from_text(MessageRole.ASSISTANT, self.partial_text)
            )
        return messages

    # ------------------------------------------------------------------
    # Commands

    def submit(self, text: str) -> asyncio.Task[None] | None:
        """Send ``text`` as the next user turn.

        Returns the task running the request, or ``None`` when the
        submission was ignored (request in flight, session closed) or
        rejected by the input validator.
        """
        if self._closed or self.busy:
            logger.debug("Ignoring submit while {}", self.state.value)
            return None

        self.notices.dismiss()
        result = validate_input(text)
        if not result.valid:
            self.notices.post(NoticeKind.VALIDATION, result.message or "Invalid input")
            return None

        message = ChatMessage.from_text(MessageRole.USER, result.sanitized_text or "")
        self._fragments = []
        self.state = StreamState.SENDING
        self._append(message)
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def clear(self) -> bool:
        """Forget the conversation and its cached copy."""
        if self._closed or self.busy:
            return False
        self.conversation = Conversation()
        self._fragments = []
        self.state = StreamState.IDLE
        if self.cache is not None:
            self.cache.clear()
        self._notify()
        return True

    async def close(self) -> None:
        """Tear the session down, closing any open stream."""
        if self._closed:
            return
        self._closed = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.notices.close()
        await self.client.aclose()
        logger.debug("Chat session closed")

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Request lifecycle

    async def _run(self) -> None:
        try:
            finished = False
            frames = self.client.stream_chat(list(self.conversation.messages))
            async with aclosing(frames):
                async for frame in frames:
                    if self._closed:
                        return
                    if self._handle_frame(frame):
                        finished = True
                        break
            if not finished and not self._closed:
                raise StreamInterrupted("The response ended unexpectedly")
        except RelayClientError as exc:
            if not self._closed:
                self._fail(exc.message)
        except asyncio.CancelledError:
            if not self._closed:
                logger.info("Chat request cancelled")
                self._fragments = []
                self.state = StreamState.ERRORED
                self._notify()
            raise
        except Exception:
            logger.exception("Unexpected failure while consuming the stream")
            if not self._closed:
                self._fail(GENERIC_ERROR_MESSAGE)

    def _handle_frame(self, frame: StreamFrame) -> bool:
        """Apply one frame; return True once the stream has finished."""
        if self.state == StreamState.SENDING:
            self.state = StreamState.STREAMING
            self._notify()

        if frame.type == FrameType.TEXT_DELTA and frame.delta:
            self._fragments.append(frame.delta)
            self._notify()
        elif frame.type == FrameType.ERROR:
            raise StreamInterrupted(frame.error_text or GENERIC_ERROR_MESSAGE)
        elif frame.type == FrameType.FINISH:
            self._commit()
            return True
        return False

    def _commit(self) -> None:
        reply = ChatMessage.from_text(MessageRole.ASSISTANT, self.partial_text)
        self._fragments = []
        self.state = StreamState.READY
        self._append(reply)
        logger.debug("Committed assistant reply ({} characters)", len(reply.text))

    def _fail(self, message: str) -> None:
        logger.warning("Chat request failed: {}", message)
        self._fragments = []
        self.state = StreamState.ERRORED
        self.notices.post(NoticeKind.ERROR, message)
        self._notify()

    def _append(self, message: ChatMessage) -> None:
        self.conversation.add_message(message)
        if self.cache is not None:
            self.cache.save(self.conversation)
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None and not self._closed:
            self.on_change(self)
