"""
flowstream SSE - Server-Sent-Events framing and transport helpers

Frames are plain strings ready to be written to the socket. sse_response()
wraps any async frame iterator in a FastAPI StreamingResponse.

Example:
    @router.post("/run")
    async def run(req: RunRequest):
        context = build_context(req)
        return sse_response(executor.stream_sse(context))
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, Optional

from fastapi.responses import StreamingResponse

from ..events.models import FlowEvent
from ..events.queue import EventQueue

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx buffering
}


def format_event(event: FlowEvent) -> str:
    """Named event frame: ``event: <type>`` plus the JSON body"""
    return event.to_sse()


def format_data(data: Any) -> str:
    """Unnamed data frame"""
    return f"data: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


def format_comment(text: str) -> str:
    """Comment frame, ignored by EventSource clients"""
    return f": {text}\n\n"


def format_ping() -> str:
    return format_comment("ping")


def format_retry(milliseconds: int) -> str:
    """Tell the client how long to wait before reconnecting"""
    return f"retry: {int(milliseconds)}\n\n"


def format_done() -> str:
    """End-of-stream marker"""
    return "data: [DONE]\n\n"


def sse_response(
    frames: AsyncIterator[str],
    headers: Optional[Dict[str, str]] = None,
) -> StreamingResponse:
    """Wrap *frames* in a text/event-stream response"""
    return StreamingResponse(
        frames,
        media_type=SSE_MEDIA_TYPE,
        headers={**SSE_HEADERS, **(headers or {})},
    )


async def iter_queue(
    queue: EventQueue,
    stop: asyncio.Event,
    poll_interval: float = 0.05,
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """
    Drain *queue* into SSE frames until *stop* is set.

    Sends a ping whenever no frame went out for keepalive_seconds. After
    *stop* is set, events still in the queue are flushed before returning.
    """
    last_sent = time.monotonic()

    while not stop.is_set():
        sent = False
        for event in queue.drain():
            yield format_event(event)
            sent = True

        now = time.monotonic()
        if sent:
            last_sent = now
        elif now - last_sent >= keepalive_seconds:
            yield format_ping()
            last_sent = now

        try:
            await asyncio.wait_for(stop.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            pass

    for event in queue.drain():
        yield format_event(event)

    stats = queue.get_stats()
    if stats["dropped_events"]:
        logger.warning(f"SSE stream finished with {stats['dropped_events']} dropped events")
