"""Transient, dismissible notices shown to the user."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from ..models.enums import NoticeKind

DEFAULT_NOTICE_TIMEOUT = 5.0


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str


class NoticeBoard:
    """Holds at most one notice and clears it after ``timeout`` seconds.

    Posting a new notice replaces the current one and restarts the timer.
    The timer runs on the current event loop; without a running loop the
    notice stays until dismissed.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_NOTICE_TIMEOUT,
        on_change: Callable[[Notice | None], None] | None = None,
    ) -> None:
        self.timeout = timeout
        self.on_change = on_change
        self._current: Notice | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def current(self) -> Notice | None:
        return self._current

    def post(self, kind: NoticeKind, message: str) -> Notice:
        notice = Notice(kind=kind, message=message)
        logger.debug("Notice posted ({}): {}", kind.value, message)
        self._set(notice)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return notice
        self._timer = loop.call_later(self.timeout, self._expire, notice)
        return notice

    def dismiss(self) -> None:
        self._set(None)

    def clear_validation(self) -> None:
        """Drop a validation notice, e.g. once the user edits the input."""
        if self._current is not None and self._current.kind == NoticeKind.VALIDATION:
            self.dismiss()

    def close(self) -> None:
        self._cancel_timer()
        self._current = None

    def _expire(self, notice: Notice) -> None:
        self._timer = None
        if self._current is notice:
            self._set(None)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set(self, notice: Notice | None) -> None:
        self._cancel_timer()
        self._current = notice
        if self.on_change is not None:
            self.on_change(notice)
