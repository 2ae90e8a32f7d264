"""Memory package containing the client's local conversation cache."""

from .conversation_cache import CACHE_KEY, ConversationCache  # noqa: F401
from .key_value_store import FileStore, InMemoryStore, KeyValueStore, build_store  # noqa: F401
