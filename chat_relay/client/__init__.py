"""Client-side chat components: session state machine and notices."""

from .notices import Notice, NoticeBoard  # noqa: F401
from .session import ChatSession  # noqa: F401
