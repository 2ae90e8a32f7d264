"""Server-sent event framing for the relay stream.

Each frame is one ``data:`` line holding a JSON :class:`StreamFrame`,
followed by a blank line.  A successful stream ends with a ``finish``
frame and the literal ``[DONE]`` sentinel; a failed one ends with an
``error`` frame and nothing after it.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from ..models.enums import FrameType
from ..models.stream_frame import StreamFrame

DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"


class FrameDecodeError(ValueError):
    """A ``data:`` line could not be decoded into a frame."""


def encode_frame(frame: StreamFrame) -> str:
    payload = json.dumps(frame.model_dump(mode="json", by_alias=True, exclude_none=True))
    return f"{DATA_PREFIX} {payload}\n\n"


def encode_done() -> str:
    return f"{DATA_PREFIX} {DONE_SENTINEL}\n\n"


def start_frame(message_id: str) -> StreamFrame:
    return StreamFrame(type=FrameType.START, message_id=message_id)


def text_start_frame(part_id: str) -> StreamFrame:
    return StreamFrame(type=FrameType.TEXT_START, id=part_id)


def text_delta_frame(part_id: str, delta: str) -> StreamFrame:
    return StreamFrame(type=FrameType.TEXT_DELTA, id=part_id, delta=delta)


def text_end_frame(part_id: str) -> StreamFrame:
    return StreamFrame(type=FrameType.TEXT_END, id=part_id)


def finish_frame() -> StreamFrame:
    return StreamFrame(type=FrameType.FINISH)


def error_frame(error_text: str) -> StreamFrame:
    return StreamFrame(type=FrameType.ERROR, error_text=error_text)


def decode_line(line: str) -> StreamFrame | str | None:
    """Decode one line of the event stream.

    Returns a :class:`StreamFrame`, the ``[DONE]`` sentinel, or ``None``
    for blank lines, comments and non-data fields.
    """
    line = line.rstrip("\r\n")
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):].lstrip(" ")
    if data == DONE_SENTINEL:
        return DONE_SENTINEL
    try:
        return StreamFrame.model_validate(json.loads(data))
    except (ValueError, ValidationError) as exc:
        raise FrameDecodeError(f"undecodable stream frame: {data[:80]!r}") from exc
