"""Client-side validation and sanitization of user input.

Every submission attempt, retries included, runs through
:func:`validate_input` before anything leaves the client.
"""

from __future__ import annotations

import re

from ..models.enums import ErrorCode
from ..models.validation_result import ValidationResult

MIN_MESSAGE_LENGTH = 1
MAX_MESSAGE_LENGTH = 4000

FORBIDDEN_PATTERNS = (
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
)

# C0 controls except tab, LF and CR, plus DEL
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize(text: str) -> str:
    """Drop control characters and trim surrounding whitespace."""
    return _CONTROL_CHARS.sub("", text).strip()


def is_unsafe(text: str) -> bool:
    return any(pattern.search(text) for pattern in FORBIDDEN_PATTERNS)


def validate_input(text: str) -> ValidationResult:
    """Validate raw user text; the first failing rule wins."""
    if len(text) < MIN_MESSAGE_LENGTH:
        return ValidationResult.reject(ErrorCode.EMPTY_MESSAGE, "The message cannot be empty")

    if len(text) > MAX_MESSAGE_LENGTH:
        return ValidationResult.reject(
            ErrorCode.MESSAGE_TOO_LONG,
            f"The message cannot exceed {MAX_MESSAGE_LENGTH} characters",
        )

    sanitized = sanitize(text)
    # Removing control characters can join a split marker ("<scr\x00ipt").
    if is_unsafe(text) or is_unsafe(sanitized):
        return ValidationResult.reject(
            ErrorCode.UNSAFE_CONTENT, "The message contains content that is not allowed"
        )

    if not sanitized:
        return ValidationResult.reject(ErrorCode.EMPTY_MESSAGE, "The message cannot be empty")

    return ValidationResult.accept(sanitized)
