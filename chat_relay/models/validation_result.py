"""Outcome of validating one piece of user input."""

from typing import Optional

from pydantic import BaseModel

from .enums import ErrorCode


class ValidationResult(BaseModel):
    """Either a sanitized text or a rejection reason."""

    valid: bool
    sanitized_text: Optional[str] = None
    error: Optional[ErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls, sanitized_text: str) -> "ValidationResult":
        return cls(valid=True, sanitized_text=sanitized_text)

    @classmethod
    def reject(cls, error: ErrorCode, message: str) -> "ValidationResult":
        return cls(valid=False, error=error, message=message)
