"""Server-Sent-Events framing for streamed chat chunks."""

import logging
import time
from typing import AsyncIterator, Optional

from fastapi.responses import StreamingResponse

from weather_chat.models.chat import ErrorChunk, ErrorDetail, StreamChunk

logger = logging.getLogger(__name__)

DONE_EVENT = "data: [DONE]\n\n"


def sse_event(chunk: StreamChunk) -> str:
    # SSE format: "data: {...}\n\n"
    return f"data: {chunk.to_json()}\n\n"


async def to_sse(chunks: AsyncIterator[StreamChunk]) -> AsyncIterator[str]:
    """Frames chunks as SSE events; a failure mid-stream becomes an error event."""
    last: Optional[StreamChunk] = None
    try:
        async for chunk in chunks:
            last = chunk
            yield sse_event(chunk)
    except Exception as e:
        logger.error(f"Stream failed: {e}", exc_info=True)
        error = ErrorChunk(
            id=last.id if last else f"chat-error-{int(time.time() * 1000)}",
            model=last.model if last else "unknown",
            conversation_id=last.conversation_id if last else None,
            error=ErrorDetail(message=str(e) or "An error occurred"),
        )
        yield sse_event(error)
    yield DONE_EVENT


def to_stream_response(chunks: AsyncIterator[StreamChunk]) -> StreamingResponse:
    """Wraps a chunk stream into an HTTP response."""
    return StreamingResponse(
        to_sse(chunks),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
