"""Completion provider adapters."""

from .base import CompletionProvider  # noqa: F401
from .chat_openai import ChatOpenAIProvider  # noqa: F401
