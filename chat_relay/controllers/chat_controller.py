"""API controller for the chat relay.

The controller stays thin: it hands the raw request to the validator and
the relay service, and converts anything unexpected into an
``InternalError`` so the client only ever sees a categorized message.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from loguru import logger

from ..services.relay_service import RelayService, get_relay_service
from ..services.request_validator import parse_chat_request
from ..utils.error_handler import InternalError, RelayError

router = APIRouter(prefix="", tags=["Chat"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/chat")
async def chat_endpoint(
    request: Request,
    service: RelayService = Depends(get_relay_service),
) -> StreamingResponse:
    """Validate a conversation and stream the assistant's reply.

    The response is ``text/event-stream`` on success.  Every failure that
    happens before the first fragment is returned as ``{"error", "code"}``
    JSON with its status.
    """
    try:
        body = await request.body()
        messages = parse_chat_request(request.headers.get("content-type"), body)
        stream = await service.open_stream(messages)
    except RelayError:
        raise
    except Exception as exc:
        logger.exception("Unhandled exception during chat relay")
        raise InternalError() from exc

    return StreamingResponse(stream, media_type="text/event-stream", headers=STREAM_HEADERS)
