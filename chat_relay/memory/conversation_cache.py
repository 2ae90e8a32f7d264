"""Best-effort local cache of the client's conversation.

The cache is written on every append and read once at startup.  It is
never the source of truth: unreadable data is discarded and the key is
cleared, and write failures only get logged.
"""

from __future__ import annotations

from loguru import logger
from pydantic import ValidationError

from ..models.conversation import Conversation
from .key_value_store import KeyValueStore

CACHE_KEY = "chatbot-messages"


class ConversationCache:
    """Serializes a :class:`Conversation` under a fixed key."""

    def __init__(self, store: KeyValueStore, key: str = CACHE_KEY) -> None:
        self.store = store
        self.key = key

    def load(self) -> Conversation:
        """Restore the cached conversation, or an empty one."""
        try:
            raw = self.store.get(self.key)
        except UnicodeDecodeError:
            logger.warning("Discarding undecodable cached conversation under {!r}", self.key)
            self.clear()
            return Conversation()
        except OSError:
            logger.exception("Failed to read cached conversation")
            return Conversation()
        if raw is None:
            return Conversation()
        try:
            conversation = Conversation.model_validate_json(raw)
        except (ValidationError, ValueError):
            logger.warning("Discarding corrupt cached conversation under {!r}", self.key)
            self.clear()
            return Conversation()
        logger.info("Loaded {} cached messages", len(conversation))
        return conversation

    def save(self, conversation: Conversation) -> None:
        if not conversation.messages:
            return
        try:
            self.store.set(self.key, conversation.model_dump_json())
        except OSError:
            logger.exception("Failed to save conversation")

    def clear(self) -> None:
        try:
            self.store.delete(self.key)
        except OSError:
            logger.exception("Failed to clear cached conversation")
